"""Bidirectional field mapping between the app and the remote store.

The app names fields in camelCase, the remote store uses snake_case columns.
Each entity type declares which fields it renames; everything else passes
through untouched. The entity type is always supplied by the caller because
some names (``dueDate``) are only renamed for some types.
"""

from __future__ import annotations

from typing import Any, Iterable

# App field name -> remote column, shared by every entity type.
COMMON_FIELD_MAP: dict[str, str] = {
    "organizationId": "organization_id",
    "createdAt": "created_at",
}

# App field name -> remote column, per entity type.
ENTITY_FIELD_MAPS: dict[str, dict[str, str]] = {
    "leads": {
        "lastContact": "last_contact",
        "lostReason": "lost_reason",
        "statusUpdatedAt": "status_updated_at",
    },
    "clients": {
        "contactPerson": "contact_person",
        "healthScore": "health_score",
        "lastContact": "last_contact",
        "contractedProducts": "contracted_products",
    },
    "tickets": {
        "statusUpdatedAt": "status_updated_at",
    },
    "invoices": {
        "dueDate": "due_date",
    },
    "activities": {
        "dueDate": "due_date",
        "relatedTo": "related_to",
    },
    "products": {
        "specialPrice": "special_price",
        "tablePrice": "table_price",
        "specialDay": "special_day",
        "pricingTable": "pricing_table",
    },
    "projects": {
        "clientName": "client_name",
        "startDate": "start_date",
        "completedAt": "completed_at",
        "proposalId": "proposal_id",
        "statusUpdatedAt": "status_updated_at",
    },
    "proposals": {
        "leadId": "lead_id",
        "clientId": "client_id",
        "clientEmail": "client_email",
        "clientName": "client_name",
        "companyName": "company_name",
        "createdDate": "created_date",
        "validUntil": "valid_until",
        "signedAt": "signed_at",
        "signedByIp": "signed_by_ip",
        "monthlyCost": "monthly_cost",
        "setupCost": "setup_cost",
        "customClause": "custom_clause",
        "consultantName": "consultant_name",
        "consultantEmail": "consultant_email",
        "consultantPhone": "consultant_phone",
        "includesDevelopment": "includes_development",
        "totalSpecialPrice": "total_special_price",
        "totalTablePrice": "total_table_price",
    },
    "audit_logs": {
        "userId": "user_id",
        "userName": "user_name",
    },
    "disqualified_prospects": {
        "companyName": "company_name",
    },
}

# One-directional rewrites applied on the way out: (entity type, remote column).
# An empty string in these foreign-key columns must reach the remote as NULL.
EMPTY_TO_NULL_COLUMNS: frozenset[tuple[str, str]] = frozenset({
    ("proposals", "client_id"),
})


def field_map(entity_type: str) -> dict[str, str]:
    """App -> remote mapping for one entity type."""
    return {**COMMON_FIELD_MAP, **ENTITY_FIELD_MAPS.get(entity_type, {})}


def reverse_field_map(entity_type: str) -> dict[str, str]:
    """Remote -> app mapping for one entity type."""
    return {v: k for k, v in field_map(entity_type).items()}


def _rename(record: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in record.items():
        result[mapping.get(key, key)] = value
    return result


def to_external(entity: dict[str, Any], entity_type: str) -> dict[str, Any]:
    """Convert one app entity to a remote record."""
    result = _rename(entity, field_map(entity_type))
    for table, column in EMPTY_TO_NULL_COLUMNS:
        if table == entity_type and result.get(column) == "":
            result[column] = None
    return result


def to_internal(remote_records: Iterable[dict[str, Any]], entity_type: str) -> list[dict[str, Any]]:
    """Convert remote rows to app entities."""
    mapping = reverse_field_map(entity_type)
    return [_rename(record, mapping) for record in remote_records if isinstance(record, dict)]


def column_name(entity_type: str, field: str) -> str:
    """Remote column for an app field name (identity when unmapped)."""
    return field_map(entity_type).get(field, field)
