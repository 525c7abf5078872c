"""Remote reconciler - pushes local changes out and pulls remote state in.

Writes are fire-and-forget: the local store already holds the change, so a
rejected or unreachable remote only produces a classified log line. Pulls run
one query per table concurrently and apply each table as soon as it arrives,
so one broken table never blocks the others.

Usage:
    reconciler = RemoteReconciler(store, remote, sessions, tasks, notifier=center)
    reconciler.push("leads", lead)           # returns immediately
    result = await reconciler.pull_all()     # PullResult with per-table outcome
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

import httpx

from ..api.client import RemoteStoreClient, RemoteStoreError, eq
from ..auth.manager import SessionManager
from ..schemas.sync import PullResult, TableResult, WriteOutcome
from ..store.collections import ADMIN_ONLY_TYPES, ENTITY_TYPES
from ..store.local_store import TENANT_FIELD, LocalStore
from ..tasks import BackgroundTasks
from .errors import RemoteErrorKind, classify, log_remote_failure
from .field_mapper import column_name, to_external, to_internal

logger = logging.getLogger(__name__)

# Columns added to the remote schema after launch; older deployments reject them.
OPTIONAL_COLUMNS: frozenset[str] = frozenset({
    "proposal_id",
    "lost_reason",
    "status_updated_at",
    "metadata",
    "type",
})

# Tables pulled newest-first with a row limit instead of in full.
ORDERED_TABLES: dict[str, str] = {"audit_logs": "timestamp.desc"}

PullListener = Callable[[PullResult], "Awaitable[Any] | Any"]


class Notifier(Protocol):
    def notify(self, title: str, message: str, severity: str = "info", related_to: str | None = None): ...


class RemoteReconciler:
    """Keeps the local store and the remote store eventually consistent."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStoreClient | None,
        sessions: SessionManager,
        tasks: BackgroundTasks,
        notifier: Notifier | None = None,
        admin_emails: set[str] | None = None,
        audit_pull_limit: int = 100,
    ):
        self.store = store
        self.remote = remote
        self.sessions = sessions
        self.tasks = tasks
        self.notifier = notifier
        self.admin_emails = admin_emails or set()
        self.audit_pull_limit = audit_pull_limit
        self._pull_listeners: list[PullListener] = []
        self._pull_lock = asyncio.Lock()
        self.last_result: PullResult | None = None
        self.pending_pull: asyncio.Task | None = None

    # -- preconditions -----------------------------------------------------

    def can_sync(self) -> bool:
        return self.remote is not None and self.sessions.has_live_session()

    def on_pulled(self, listener: PullListener) -> None:
        """Register a callback run after every completed pull."""
        self._pull_listeners.append(listener)

    def _with_tenant(self, entity: dict[str, Any]) -> dict[str, Any]:
        if entity.get(TENANT_FIELD):
            return entity
        tenant = self.sessions.current_tenant()
        if not tenant:
            return entity
        return {**entity, TENANT_FIELD: tenant}

    # -- writes ------------------------------------------------------------

    def push(self, entity_type: str, entity: dict[str, Any]) -> asyncio.Task | None:
        """Schedule an upsert. No-op without a live session."""
        if not self.can_sync():
            logger.debug("No live session; %s %s kept local only", entity_type, entity.get("id"))
            return None
        return self.tasks.spawn(
            self.push_now(entity_type, dict(entity)),
            name=f"push:{entity_type}:{entity.get('id')}",
        )

    def delete(self, entity_type: str, entity_id: str) -> asyncio.Task | None:
        """Schedule a remote delete. No-op without a live session."""
        if not self.can_sync():
            logger.debug("No live session; delete of %s %s kept local only", entity_type, entity_id)
            return None
        return self.tasks.spawn(
            self.delete_now(entity_type, entity_id),
            name=f"delete:{entity_type}:{entity_id}",
        )

    async def push_now(self, entity_type: str, entity: dict[str, Any]) -> WriteOutcome:
        entity_id = entity.get("id")
        if not self.can_sync():
            return WriteOutcome(table=entity_type, entity_id=entity_id, ok=False, skipped=True)

        record = to_external(self._with_tenant(entity), entity_type)
        try:
            await self.remote.upsert(entity_type, record)
        except (RemoteStoreError, httpx.HTTPError) as exc:
            kind = classify(exc)
            if kind is RemoteErrorKind.SCHEMA_MISMATCH:
                return await self._retry_without_optional(entity_type, entity_id, record, exc)
            return self._write_failed("upsert", entity_type, entity_id, kind, exc)

        logger.debug("Pushed %s %s", entity_type, entity_id)
        return WriteOutcome(table=entity_type, entity_id=entity_id, ok=True)

    async def _retry_without_optional(
        self,
        entity_type: str,
        entity_id: str | None,
        record: dict[str, Any],
        first_error: Exception,
    ) -> WriteOutcome:
        stripped = {k: v for k, v in record.items() if k not in OPTIONAL_COLUMNS}
        if stripped == record:
            return self._write_failed(
                "upsert", entity_type, entity_id, RemoteErrorKind.SCHEMA_MISMATCH, first_error
            )

        try:
            await self.remote.upsert(entity_type, stripped)
        except (RemoteStoreError, httpx.HTTPError) as exc:
            logger.warning(
                "Schema drift on %s: upsert failed even without optional columns: %s",
                entity_type,
                exc,
            )
            return WriteOutcome(
                table=entity_type,
                entity_id=entity_id,
                ok=False,
                error_kind=classify(exc).value,
                error=str(exc),
            )

        dropped = sorted(set(record) - set(stripped))
        logger.warning("Pushed %s %s without columns %s", entity_type, entity_id, ", ".join(dropped))
        return WriteOutcome(table=entity_type, entity_id=entity_id, ok=True)

    async def delete_now(self, entity_type: str, entity_id: str) -> WriteOutcome:
        if not self.can_sync():
            return WriteOutcome(table=entity_type, entity_id=entity_id, ok=False, skipped=True)
        try:
            await self.remote.delete(entity_type, entity_id)
        except (RemoteStoreError, httpx.HTTPError) as exc:
            return self._write_failed("delete", entity_type, entity_id, classify(exc), exc)
        return WriteOutcome(table=entity_type, entity_id=entity_id, ok=True)

    def _write_failed(
        self,
        operation: str,
        entity_type: str,
        entity_id: str | None,
        kind: RemoteErrorKind,
        exc: Exception,
    ) -> WriteOutcome:
        log_remote_failure(logger, kind, operation, entity_type, exc)
        if kind is RemoteErrorKind.POLICY_RECURSION:
            self._alert_recursion(entity_type)
        return WriteOutcome(
            table=entity_type,
            entity_id=entity_id,
            ok=False,
            error_kind=kind.value,
            error=str(exc),
        )

    # -- reads -------------------------------------------------------------

    def _pull_tables(self, is_admin: bool) -> list[str]:
        return [t for t in ENTITY_TYPES if is_admin or t not in ADMIN_ONLY_TYPES]

    def _query_kwargs(self, table: str, tenant: str | None, is_admin: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if not is_admin and tenant and table not in ADMIN_ONLY_TYPES:
            kwargs["filters"] = {column_name(table, TENANT_FIELD): eq(tenant)}
        if table in ORDERED_TABLES:
            kwargs["order"] = ORDERED_TABLES[table]
            kwargs["limit"] = self.audit_pull_limit
        return kwargs

    async def _fetch(self, table: str, tenant: str | None, is_admin: bool) -> tuple[str, list[dict] | None, Exception | None]:
        try:
            rows = await self.remote.select_all(table, **self._query_kwargs(table, tenant, is_admin))
        except (RemoteStoreError, httpx.HTTPError) as exc:
            return table, None, exc
        except Exception as exc:
            logger.exception("Unexpected error pulling %s", table)
            return table, None, exc
        return table, rows, None

    async def pull_all(self) -> PullResult:
        """Refresh every collection from the remote store.

        Each table is applied as soon as its query completes. A failed table
        keeps its current local contents.
        """
        if not self.can_sync():
            logger.debug("No live session; pull skipped")
            return PullResult(skipped=True)

        async with self._pull_lock:
            result = await self._pull_all_locked()

        self.last_result = result
        for listener in list(self._pull_listeners):
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Post-pull listener failed")
        return result

    async def _pull_all_locked(self) -> PullResult:
        is_admin = self.sessions.is_platform_admin(self.admin_emails)
        tenant = self.sessions.current_tenant()
        tables = self._pull_tables(is_admin)
        result = PullResult()
        kinds: list[RemoteErrorKind] = []

        pending = [asyncio.ensure_future(self._fetch(t, tenant, is_admin)) for t in tables]
        for next_done in asyncio.as_completed(pending):
            table, rows, exc = await next_done
            if exc is not None:
                kind = classify(exc)
                kinds.append(kind)
                log_remote_failure(logger, kind, "select", table, exc)
                if kind is RemoteErrorKind.POLICY_RECURSION:
                    self._alert_recursion(table)
                result.tables[table] = TableResult(
                    table=table, ok=False, error_kind=kind.value, error=str(exc)
                )
                continue

            count = self.store.replace_all(table, to_internal(rows, table))
            result.tables[table] = TableResult(table=table, ok=True, count=count)

        result.synced_at = datetime.now(timezone.utc)
        if result.tables and not result.succeeded and any(k is not RemoteErrorKind.NETWORK for k in kinds):
            self._alert(
                "Sync failed",
                "No table could be loaded from the remote store. Working with local data.",
            )

        logger.info(
            "Pull finished: %d ok, %d failed",
            len(result.succeeded),
            len(result.failed),
        )
        return result

    def schedule_pull(self, reason: str = "manual") -> asyncio.Task | None:
        """Run pull_all in the background (startup, session renewal)."""
        if not self.can_sync():
            return None
        logger.debug("Scheduling pull (%s)", reason)
        self.pending_pull = self.tasks.spawn(self.pull_all(), name=f"pull:{reason}")
        return self.pending_pull

    # -- alerts ------------------------------------------------------------

    def _alert(self, title: str, message: str) -> None:
        if self.notifier is None:
            return
        self.notifier.notify(title, message, "alert")

    def _alert_recursion(self, table: str) -> None:
        self._alert(
            "Access policy misconfigured",
            f"The remote access policy for '{table}' recurses infinitely; "
            "its records cannot be loaded until the policy is fixed.",
        )
