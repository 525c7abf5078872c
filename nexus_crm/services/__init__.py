"""Mutation pipeline and its side-effect services."""

from .audit_svc import AuditEmitter
from .conversion_svc import ProposalConverter, build_implementation_project
from .dispatch_svc import (
    BulkDispatchScheduler,
    DispatchAlreadyRunning,
    DispatchJob,
    dispatch_address,
    personalize_message,
)
from .messaging_svc import MessagingService
from .mutation_svc import DataService
from .notification_svc import NotificationCenter, PlatformAlertSink
from .trigger_svc import AutomationEngine
from .webhook_svc import deliver_webhook

__all__ = [
    "AuditEmitter",
    "AutomationEngine",
    "BulkDispatchScheduler",
    "DataService",
    "DispatchAlreadyRunning",
    "DispatchJob",
    "MessagingService",
    "NotificationCenter",
    "PlatformAlertSink",
    "ProposalConverter",
    "build_implementation_project",
    "deliver_webhook",
    "dispatch_address",
    "personalize_message",
]
