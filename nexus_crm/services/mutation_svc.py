"""Data service - the single write pipeline for every entity mutation.

Each mutation runs the same steps: apply to the local store, schedule the
remote write, record an audit entry for the actor, then fire automation for
the event. Only the local step can fail the call.

Usage:
    lead = data.add_lead(actor, {"id": "L-1", "name": "Acme"})
    data.update_lead_status(actor, "L-1", LeadStatus.QUALIFIED)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..schemas.entities import (
    Actor,
    InvoiceStatus,
    LeadStatus,
    ProposalStatus,
    TicketStatus,
    TriggerType,
    new_id,
    utc_now_iso,
)
from ..store.local_store import TENANT_FIELD, LocalStore
from ..sync.reconciler import Notifier, RemoteReconciler
from .audit_svc import AuditEmitter
from .conversion_svc import ProposalConverter
from .trigger_svc import AutomationEngine

logger = logging.getLogger(__name__)

# Audit module label per entity type.
MODULE_LABELS: dict[str, str] = {
    "leads": "Commercial",
    "proposals": "Commercial",
    "competitors": "Commercial",
    "prospecting_history": "Commercial",
    "disqualified_prospects": "Commercial",
    "clients": "Customers",
    "tickets": "Support",
    "invoices": "Finance",
    "financial_categories": "Finance",
    "activities": "Agenda",
    "products": "Catalog",
    "projects": "Projects",
    "workflows": "Automation",
    "webhooks": "Settings",
    "custom_fields": "Settings",
    "inbox_conversations": "Inbox",
    "organizations": "Platform",
}

LEAD_STATUS_TRIGGERS: dict[str, TriggerType] = {
    LeadStatus.QUALIFIED.value: TriggerType.LEAD_QUALIFIED,
    LeadStatus.CLOSED_WON.value: TriggerType.DEAL_WON,
    LeadStatus.CLOSED_LOST.value: TriggerType.DEAL_LOST,
}


def _status_value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


class DataService:
    """Mutations with audit, sync and automation side effects."""

    def __init__(
        self,
        store: LocalStore,
        reconciler: RemoteReconciler,
        audit: AuditEmitter,
        notifier: Notifier,
        automation: AutomationEngine,
        converter: ProposalConverter,
        churn_risk_threshold: int = 40,
    ):
        self.store = store
        self.reconciler = reconciler
        self.audit = audit
        self.notifier = notifier
        self.automation = automation
        self.converter = converter
        self.churn_risk_threshold = churn_risk_threshold

    # -- generic pipeline --------------------------------------------------

    @staticmethod
    def _with_tenant(entity: dict[str, Any], actor: Actor | None) -> dict[str, Any]:
        item = dict(entity)
        if not item.get(TENANT_FIELD) and actor is not None and actor.organization_id:
            item[TENANT_FIELD] = actor.organization_id
        return item

    def _after_write(
        self,
        actor: Actor | None,
        entity_type: str,
        entity: dict[str, Any],
        action: str,
        details: str,
        trigger: TriggerType | None = None,
    ) -> None:
        self.reconciler.push(entity_type, entity)
        self.audit.record(actor, action, details, MODULE_LABELS.get(entity_type, entity_type))
        if trigger is not None:
            self.automation.fire(trigger.value, entity)

    def add(
        self,
        actor: Actor | None,
        entity_type: str,
        entity: dict[str, Any],
        *,
        action: str | None = None,
        details: str | None = None,
        trigger: TriggerType | None = None,
    ) -> dict[str, Any]:
        item = self._with_tenant(entity, actor)
        if not item.get("id"):
            item["id"] = new_id(entity_type[:4].upper())
        stored = self.store.add(entity_type, item)
        self._after_write(
            actor,
            entity_type,
            stored,
            action or f"Create {entity_type}",
            details or f"Created {stored.get('name') or stored.get('title') or stored['id']}",
            trigger,
        )
        return stored

    def update(
        self,
        actor: Actor | None,
        entity_type: str,
        entity: dict[str, Any],
        *,
        action: str | None = None,
        details: str | None = None,
        trigger: TriggerType | None = None,
    ) -> dict[str, Any] | None:
        stored = self.store.update(entity_type, self._with_tenant(entity, actor))
        if stored is None:
            logger.warning("Update ignored: %s %s not found", entity_type, entity.get("id"))
            return None
        self._after_write(
            actor,
            entity_type,
            stored,
            action or f"Update {entity_type}",
            details or f"Updated {stored.get('name') or stored.get('title') or stored['id']}",
            trigger,
        )
        return stored

    def remove(self, actor: Actor | None, entity_type: str, entity_id: str) -> bool:
        removed = self.store.remove(entity_type, entity_id)
        self.reconciler.delete(entity_type, entity_id)
        self.audit.record(
            actor,
            f"Delete {entity_type}",
            f"Removed {entity_id}",
            MODULE_LABELS.get(entity_type, entity_type),
        )
        return removed

    def add_many(
        self,
        actor: Actor | None,
        entity_type: str,
        entities: Iterable[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        items = []
        for entity in entities:
            item = self._with_tenant(entity, actor)
            if not item.get("id"):
                item["id"] = new_id(entity_type[:4].upper())
            items.append(item)
        stored = self.store.add_many(entity_type, items)
        for item in stored:
            self.reconciler.push(entity_type, item)
        self.audit.record(
            actor,
            f"Bulk import {entity_type}",
            f"Imported {len(stored)} record(s)",
            MODULE_LABELS.get(entity_type, entity_type),
        )
        return stored

    # -- commercial ----------------------------------------------------------

    def add_lead(self, actor: Actor | None, lead: dict[str, Any]) -> dict[str, Any]:
        item = {"status": LeadStatus.NEW.value, "createdAt": utc_now_iso(), **lead}
        return self.add(
            actor,
            "leads",
            item,
            action="Create Lead",
            details=f"Lead {item.get('name', '')} created",
            trigger=TriggerType.LEAD_CREATED,
        )

    def update_lead_status(
        self,
        actor: Actor | None,
        lead_id: str,
        status: LeadStatus | str,
        lost_reason: str | None = None,
    ) -> dict[str, Any] | None:
        lead = self.store.find("leads", lead_id)
        if lead is None:
            logger.warning("Lead %s not found", lead_id)
            return None

        value = _status_value(status)
        previous = lead.get("status")
        updated = {**lead, "status": value, "statusUpdatedAt": utc_now_iso()}
        if lost_reason:
            updated["lostReason"] = lost_reason
        trigger = LEAD_STATUS_TRIGGERS.get(value) if value != previous else None
        return self.update(
            actor,
            "leads",
            updated,
            action="Update Lead Status",
            details=f"Lead {lead.get('name', lead_id)}: {previous} -> {value}",
            trigger=trigger,
        )

    def update_proposal(self, actor: Actor | None, proposal: dict[str, Any]) -> dict[str, Any] | None:
        """Update a proposal; a new acceptance converts it into a project."""
        original = self.store.find("proposals", proposal["id"])
        if original is None:
            logger.warning("Proposal %s not found", proposal["id"])
            return None

        accepted = ProposalStatus.ACCEPTED.value
        newly_accepted = proposal.get("status") == accepted and original.get("status") != accepted
        item = dict(proposal)
        if not item.get(TENANT_FIELD) and original.get(TENANT_FIELD):
            item[TENANT_FIELD] = original[TENANT_FIELD]

        stored = self.update(
            actor,
            "proposals",
            item,
            action="Update Proposal",
            details=f"Proposal {item.get('title', item['id'])} is {item.get('status')}",
        )
        if stored is not None and newly_accepted:
            tenant = actor.organization_id if actor else None
            project = self.converter.convert(stored, tenant=tenant)
            if project is not None:
                self.notifier.notify(
                    "Proposal signed",
                    f"Project '{project['title']}' was created.",
                    "success",
                    related_to=project["id"],
                )
        return stored

    # -- customers & support ------------------------------------------------

    def update_client(self, actor: Actor | None, client: dict[str, Any]) -> dict[str, Any] | None:
        previous = self.store.find("clients", client.get("id"))
        stored = self.update(actor, "clients", client, action="Update Client")
        if stored is None:
            return None

        score = stored.get("healthScore")
        before = previous.get("healthScore") if previous else None
        threshold = self.churn_risk_threshold
        if isinstance(score, (int, float)) and score < threshold and (
            not isinstance(before, (int, float)) or before >= threshold
        ):
            self.notifier.notify(
                "Churn risk",
                f"{stored.get('name', stored['id'])} health score dropped to {score}.",
                "warning",
                related_to=stored["id"],
            )
            self.automation.fire(TriggerType.CLIENT_CHURN_RISK.value, stored)
        return stored

    def add_clients_bulk(self, actor: Actor | None, clients: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return self.add_many(actor, "clients", clients)

    def add_ticket(self, actor: Actor | None, ticket: dict[str, Any]) -> dict[str, Any]:
        item = {"status": TicketStatus.OPEN.value, "createdAt": utc_now_iso(), **ticket}
        return self.add(
            actor,
            "tickets",
            item,
            action="Open Ticket",
            details=f"Ticket {item.get('subject') or item.get('title') or ''}".strip(),
            trigger=TriggerType.TICKET_CREATED,
        )

    # -- agenda ------------------------------------------------------------

    def add_activity(self, actor: Actor | None, activity: dict[str, Any]) -> dict[str, Any]:
        item = {"completed": False, **activity}
        return self.add(
            actor,
            "activities",
            item,
            action="Create Activity",
            details=f"Activity {item.get('title', '')}".strip(),
        )

    def toggle_activity(self, actor: Actor | None, activity_id: str) -> dict[str, Any] | None:
        activity = self.store.find("activities", activity_id)
        if activity is None:
            return None
        updated = {**activity, "completed": not activity.get("completed", False)}
        return self.update(actor, "activities", updated, action="Toggle Activity")

    # -- finance -----------------------------------------------------------

    def update_invoice_status(
        self,
        actor: Actor | None,
        invoice_id: str,
        status: InvoiceStatus | str,
    ) -> dict[str, Any] | None:
        invoice = self.store.find("invoices", invoice_id)
        if invoice is None:
            return None
        value = _status_value(status)
        return self.update(
            actor,
            "invoices",
            {**invoice, "status": value},
            action="Update Invoice Status",
            details=f"Invoice {invoice_id}: {invoice.get('status')} -> {value}",
        )

    def add_invoices_bulk(self, actor: Actor | None, invoices: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return self.add_many(actor, "invoices", invoices)

    # -- inbox & contact history ---------------------------------------------

    def add_inbox_interaction(
        self,
        contact_name: str,
        channel: str,
        text: str,
        contact_identifier: str = "",
        sender: str = "agent",
        tenant: str | None = None,
    ) -> dict[str, Any]:
        """Append a message to the contact's conversation, creating it if needed."""
        message = {"id": new_id("MSG"), "text": text, "sender": sender, "timestamp": utc_now_iso()}
        for convo in self.store.get("inbox_conversations"):
            if convo.get("contactName") != contact_name:
                continue
            updated = {
                **convo,
                "lastMessage": text,
                "lastMessageAt": message["timestamp"],
                "messages": [*(convo.get("messages") or []), message],
            }
            self.store.update("inbox_conversations", updated)
            self.reconciler.push("inbox_conversations", updated)
            return updated

        convo = {
            "id": new_id("CONV"),
            "contactName": contact_name,
            "contactIdentifier": contact_identifier,
            "type": channel,
            "lastMessage": text,
            "lastMessageAt": message["timestamp"],
            "unreadCount": 0,
            "status": "Open",
            "messages": [message],
        }
        if tenant:
            convo[TENANT_FIELD] = tenant
        stored = self.store.add("inbox_conversations", convo)
        self.reconciler.push("inbox_conversations", stored)
        return stored

    def record_outbound_contact(
        self,
        target: dict[str, Any],
        channel: str,
        content: str,
        actor: Actor | None = None,
    ) -> dict[str, Any]:
        """Log a completed outbound contact and stamp lastContact on the target."""
        name = target.get("name") or target.get("contactPerson") or target.get("id", "")
        activity = self.add(
            actor,
            "activities",
            {
                "title": f"{'WhatsApp' if channel == 'whatsapp' else 'Email'} sent to {name}",
                "type": "WhatsApp" if channel == "whatsapp" else "Email",
                "description": content,
                "dueDate": utc_now_iso(),
                "completed": True,
                "relatedTo": name,
            },
            action="Outbound Contact",
            details=f"{channel} to {name}",
        )

        target_id = target.get("id")
        if target_id:
            for entity_type in ("clients", "leads"):
                existing = self.store.find(entity_type, target_id)
                if existing is None:
                    continue
                updated = {**existing, "lastContact": utc_now_iso()}
                self.store.update(entity_type, updated)
                self.reconciler.push(entity_type, updated)
                break
        return activity

    # -- settings ----------------------------------------------------------

    def restore_defaults(self, actor: Actor | None) -> None:
        self.store.restore_defaults()
        self.audit.record(actor, "Restore Defaults", "All collections reset", "Settings")
