"""Automation trigger engine - fires workflow rules and webhooks for an event."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..schemas.entities import AutomationRule, TriggerType, WebhookSubscription, utc_now_iso
from ..store.local_store import LocalStore
from ..sync.reconciler import Notifier, RemoteReconciler
from ..tasks import BackgroundTasks
from .webhook_svc import deliver_webhook

logger = logging.getLogger(__name__)

TRIGGER_TYPES = {t.value for t in TriggerType}


class AutomationEngine:
    """Evaluates active rules and webhook subscriptions against trigger events.

    Rule bookkeeping (run counter, last run) goes through the normal write
    path; webhook calls are fire-and-forget background tasks.
    """

    def __init__(
        self,
        store: LocalStore,
        reconciler: RemoteReconciler,
        notifier: Notifier,
        tasks: BackgroundTasks,
        webhook_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.reconciler = reconciler
        self.notifier = notifier
        self.tasks = tasks
        self.webhook_timeout = webhook_timeout
        self._transport = transport

    def matching_rules(self, trigger: str) -> list[dict[str, Any]]:
        rules = []
        for raw in self.store.get("workflows"):
            if raw.get("active") is not True or raw.get("trigger") != trigger:
                continue
            try:
                AutomationRule.from_entity(raw)
            except ValidationError as e:
                logger.warning("Skipping malformed workflow %s: %s", raw.get("id"), e)
                continue
            rules.append(raw)
        return rules

    def matching_webhooks(self, trigger: str) -> list[WebhookSubscription]:
        subscriptions = []
        for raw in self.store.get("webhooks"):
            if raw.get("active") is not True or raw.get("triggerEvent") != trigger:
                continue
            try:
                subscriptions.append(WebhookSubscription.from_entity(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed webhook %s: %s", raw.get("id"), e)
        return subscriptions

    def fire(self, trigger: str, payload: dict[str, Any]) -> list[str]:
        """Process one event. Returns the ids of the rules that ran."""
        if trigger not in TRIGGER_TYPES:
            logger.warning("Unknown trigger type: %s", trigger)

        fired = []
        for rule in self.matching_rules(trigger):
            self.notifier.notify(
                "Automation executed",
                f"Workflow '{rule.get('name', rule.get('id'))}' ran for {trigger}.",
                "info",
                related_to=payload.get("id"),
            )
            updated = {
                **rule,
                "runs": int(rule.get("runs") or 0) + 1,
                "lastRun": utc_now_iso(),
            }
            self.store.update("workflows", updated)
            self.reconciler.push("workflows", updated)
            fired.append(rule["id"])

        for subscription in self.matching_webhooks(trigger):
            self.tasks.spawn(
                deliver_webhook(
                    subscription,
                    payload,
                    timeout=self.webhook_timeout,
                    transport=self._transport,
                ),
                name=f"webhook:{subscription.id}",
            )

        if fired:
            logger.info("Trigger %s ran %d workflow(s)", trigger, len(fired))
        return fired
