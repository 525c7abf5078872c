"""Entity-side schemas: actors, audit entries, notifications, rules, webhooks."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["info", "warning", "success", "alert"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class LeadStatus(str, Enum):
    NEW = "Novo"
    QUALIFIED = "Qualificado"
    PROPOSAL = "Proposta"
    NEGOTIATION = "Negociação"
    CLOSED_WON = "Ganho"
    CLOSED_LOST = "Perdido"
    CANCELLED = "Cancelado"


class TicketStatus(str, Enum):
    OPEN = "Aberto"
    IN_PROGRESS = "Em Andamento"
    RESOLVED = "Resolvido"
    CLOSED = "Fechado"


class InvoiceStatus(str, Enum):
    DRAFT = "Rascunho"
    PENDING = "Pendente"
    SENT = "Enviado"
    PAID = "Pago"
    OVERDUE = "Atrasado"
    CANCELLED = "Cancelado"


class ProposalStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class TriggerType(str, Enum):
    LEAD_CREATED = "lead_created"
    LEAD_QUALIFIED = "lead_qualified"
    DEAL_WON = "deal_won"
    DEAL_LOST = "deal_lost"
    TICKET_CREATED = "ticket_created"
    CLIENT_CHURN_RISK = "client_churn_risk"
    PROJECT_STAGNATED = "project_stagnated"


class EntityModel(BaseModel):
    """Base for schemas stored as entities in the internal (camelCase) convention."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_entity(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_entity(cls, data: dict[str, Any]):
        return cls.model_validate(data)


class Actor(EntityModel):
    """The signed-in user performing a mutation."""

    id: str
    name: str
    email: str | None = None
    organization_id: str | None = None
    role: str | None = None


class AuditEntry(EntityModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: new_id("LOG"))
    timestamp: str = Field(default_factory=utc_now_iso)
    user_id: str
    user_name: str
    action: str
    details: str
    module: str
    organization_id: str | None = None


class Notification(EntityModel):
    id: str = Field(default_factory=lambda: new_id("NTF"))
    title: str
    message: str
    severity: Severity = "info"
    timestamp: str = Field(default_factory=utc_now_iso)
    read: bool = False
    related_to: str | None = None


class Toast(EntityModel):
    id: str = Field(default_factory=lambda: new_id("TST"))
    title: str
    message: str
    severity: Severity = "info"
    expires_at: float


class WorkflowAction(EntityModel):
    id: str
    type: str  # create_task, send_email, notify_slack, update_field
    config: dict[str, Any] = Field(default_factory=dict)


class AutomationRule(EntityModel):
    id: str
    name: str
    active: bool = False
    trigger: str
    actions: list[WorkflowAction] = Field(default_factory=list)
    runs: int = 0
    last_run: str | None = None
    organization_id: str | None = None


class WebhookSubscription(EntityModel):
    id: str
    name: str
    url: str
    active: bool = False
    trigger_event: str
    method: Literal["POST", "GET"] = "POST"
    headers: dict[str, str] | None = None
