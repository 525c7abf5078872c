"""Pydantic schemas shared across the engine."""

from .dispatch import DispatchProgress
from .entities import (
    Actor,
    AuditEntry,
    AutomationRule,
    InvoiceStatus,
    LeadStatus,
    Notification,
    ProposalStatus,
    TicketStatus,
    Toast,
    TriggerType,
    WebhookSubscription,
    WorkflowAction,
)
from .sync import PullResult, TableResult, WriteOutcome

__all__ = [
    "Actor",
    "AuditEntry",
    "AutomationRule",
    "DispatchProgress",
    "InvoiceStatus",
    "LeadStatus",
    "Notification",
    "ProposalStatus",
    "PullResult",
    "TableResult",
    "TicketStatus",
    "Toast",
    "TriggerType",
    "WebhookSubscription",
    "WorkflowAction",
    "WriteOutcome",
]
