"""Managed entity collections and their built-in defaults."""

from __future__ import annotations

import copy
from typing import Any

# Entity type == remote table name.
ENTITY_TYPES: tuple[str, ...] = (
    "leads",
    "clients",
    "tickets",
    "invoices",
    "activities",
    "products",
    "projects",
    "workflows",
    "competitors",
    "proposals",
    "custom_fields",
    "webhooks",
    "prospecting_history",
    "disqualified_prospects",
    "audit_logs",
    "market_trends",
    "inbox_conversations",
    "financial_categories",
    "organizations",
)

# Collections that are only pulled for platform admins.
ADMIN_ONLY_TYPES: frozenset[str] = frozenset({"organizations"})

# Collections kept newest-first.
PREPEND_TYPES: frozenset[str] = frozenset({"activities", "audit_logs", "inbox_conversations", "prospecting_history"})

STORAGE_KEY_PREFIX = "nexus_"

DEFAULT_ORGANIZATION_ID = "org-1"

_DEFAULT_COLLECTIONS: dict[str, list[dict[str, Any]]] = {
    "organizations": [
        {
            "id": DEFAULT_ORGANIZATION_ID,
            "name": "Soft Case Tecnologia",
            "slug": "softcase",
            "plan": "Enterprise",
        },
    ],
    "financial_categories": [
        {"id": "FC-REV-1", "name": "Receita Recorrente", "type": "Revenue", "budget": 0, "organizationId": DEFAULT_ORGANIZATION_ID},
        {"id": "FC-EXP-1", "name": "Custos Operacionais", "type": "Expense", "budget": 0, "organizationId": DEFAULT_ORGANIZATION_ID},
    ],
}


def storage_key(entity_type: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{entity_type}"


def default_collection(entity_type: str) -> list[dict[str, Any]]:
    """Fresh copy of the built-in collection for a type (empty for most types)."""
    return copy.deepcopy(_DEFAULT_COLLECTIONS.get(entity_type, []))


def validate_entity_type(entity_type: str) -> str:
    if entity_type not in ENTITY_TYPES:
        raise KeyError(f"Unknown entity type: {entity_type}")
    return entity_type
