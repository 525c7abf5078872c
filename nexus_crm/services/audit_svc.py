"""Audit trail emitter."""

from __future__ import annotations

import logging

from ..schemas.entities import Actor, AuditEntry
from ..store.local_store import LocalStore
from ..sync.reconciler import RemoteReconciler

logger = logging.getLogger(__name__)

AUDIT_TABLE = "audit_logs"


class AuditEmitter:
    """Appends audit entries for actions performed by a known actor."""

    def __init__(self, store: LocalStore, reconciler: RemoteReconciler):
        self.store = store
        self.reconciler = reconciler

    def record(
        self,
        actor: Actor | None,
        action: str,
        details: str,
        module: str,
    ) -> AuditEntry | None:
        """Create an entry; returns None when no actor is known.

        Audit creation does not depend on remote sync: the entry is stored
        locally and pushed like any other entity.
        """
        if actor is None:
            logger.debug("Audit skipped (no actor): %s", action)
            return None

        entry = AuditEntry(
            user_id=actor.id,
            user_name=actor.name,
            action=action,
            details=details,
            module=module,
            organization_id=actor.organization_id,
        )
        payload = entry.to_entity()
        self.store.add(AUDIT_TABLE, payload)
        self.reconciler.push(AUDIT_TABLE, payload)
        return entry
