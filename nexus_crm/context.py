"""Application context - every engine component, built once and passed around.

Usage:
    ctx = AppContext.build()
    await ctx.start()          # hydrate local collections, pull when signed in
    ctx.data.add_lead(ctx.sessions.current_actor(), {"name": "Acme"})
    await ctx.aclose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy import Engine

from .api.bridge import BridgeClient
from .api.client import RemoteConfig, RemoteStoreClient
from .auth.client import AuthClient
from .auth.manager import SessionManager
from .auth.storage import SessionStorage
from .config import NexusSettings, settings as default_settings
from .database import create_local_engine, create_session_factory
from .schemas.sync import PullResult
from .services.audit_svc import AuditEmitter
from .services.conversion_svc import ProposalConverter
from .services.dispatch_svc import BulkDispatchScheduler
from .services.messaging_svc import MessagingService
from .services.mutation_svc import DataService
from .services.notification_svc import NotificationCenter, PlatformAlertSink
from .services.trigger_svc import AutomationEngine
from .store.local_store import LocalStore
from .store.snapshot_repo import SnapshotRepository
from .sync.reconciler import RemoteReconciler
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: NexusSettings
    engine: Engine
    store: LocalStore
    sessions: SessionManager
    remote: RemoteStoreClient | None
    tasks: BackgroundTasks
    notifications: NotificationCenter
    reconciler: RemoteReconciler
    audit: AuditEmitter
    automation: AutomationEngine
    converter: ProposalConverter
    data: DataService
    bridge: BridgeClient
    messaging: MessagingService
    dispatcher: BulkDispatchScheduler

    @classmethod
    def build(
        cls,
        config: NexusSettings | None = None,
        *,
        database_url: str | None = None,
        session_storage: SessionStorage | None = None,
        remote_transport: httpx.AsyncBaseTransport | None = None,
        bridge_transport: httpx.AsyncBaseTransport | None = None,
        webhook_transport: httpx.AsyncBaseTransport | None = None,
        alert_sink: PlatformAlertSink | None = None,
    ) -> "AppContext":
        config = config or default_settings

        engine = create_local_engine(database_url or config.local_database_url, echo=config.echo_sql)
        store = LocalStore(SnapshotRepository(create_session_factory(engine)))

        auth_client = None
        if config.remote_configured:
            auth_client = AuthClient(
                config.remote_url,
                config.remote_anon_key,
                config.remote_timeout_seconds,
                transport=remote_transport,
            )
        sessions = SessionManager(
            storage=session_storage or SessionStorage(config.session_path),
            auth_client=auth_client,
        )

        remote = None
        if config.remote_configured:
            remote = RemoteStoreClient(
                RemoteConfig(config.remote_url, config.remote_anon_key, config.remote_timeout_seconds),
                token_provider=sessions.access_token,
                transport=remote_transport,
            )

        tasks = BackgroundTasks()
        notifications = NotificationCenter(
            toast_ttl_seconds=config.toast_ttl_seconds,
            push_alerts_enabled=config.push_alerts_enabled,
            alert_sink=alert_sink,
        )
        reconciler = RemoteReconciler(
            store,
            remote,
            sessions,
            tasks,
            notifier=notifications,
            admin_emails=config.super_admin_emails_set,
            audit_pull_limit=config.audit_pull_limit,
        )
        audit = AuditEmitter(store, reconciler)
        automation = AutomationEngine(
            store,
            reconciler,
            notifications,
            tasks,
            webhook_timeout=config.webhook_timeout_seconds,
            transport=webhook_transport,
        )
        converter = ProposalConverter(store, reconciler)
        data = DataService(
            store,
            reconciler,
            audit,
            notifications,
            automation,
            converter,
            churn_risk_threshold=config.churn_risk_health_threshold,
        )
        bridge = BridgeClient(
            proxy_url=config.bridge_proxy_url,
            direct_url=config.bridge_direct_url,
            timeout=config.bridge_timeout_seconds,
            direct_timeout=config.bridge_direct_timeout_seconds,
            transport=bridge_transport,
        )
        messaging = MessagingService(bridge, data, notifications)
        dispatcher = BulkDispatchScheduler(
            data.record_outbound_contact,
            min_delay_seconds=config.dispatch_min_delay_seconds,
            max_delay_seconds=config.dispatch_max_delay_seconds,
            poll_interval_seconds=config.dispatch_poll_interval_seconds,
        )

        ctx = cls(
            settings=config,
            engine=engine,
            store=store,
            sessions=sessions,
            remote=remote,
            tasks=tasks,
            notifications=notifications,
            reconciler=reconciler,
            audit=audit,
            automation=automation,
            converter=converter,
            data=data,
            bridge=bridge,
            messaging=messaging,
            dispatcher=dispatcher,
        )
        sessions.on_session_renewed(ctx._on_session_renewed)
        reconciler.on_pulled(ctx._after_pull)
        return ctx

    def _on_session_renewed(self, event: str) -> None:
        self.reconciler.schedule_pull(event)

    def _after_pull(self, result: PullResult) -> None:
        if result.skipped:
            return
        created = self.converter.sweep(tenant=self.sessions.current_tenant())
        if created:
            logger.info("Converted %d accepted proposal(s) after pull", len(created))

    async def start(self, pull: bool = True) -> PullResult | None:
        """Hydrate local collections, then refresh from the remote when signed in."""
        self.store.hydrate()
        if not pull:
            return None
        before = self.sessions.session
        if not await self.sessions.ensure_fresh():
            logger.info("No live session; working with local data")
            return None
        scheduled = self.reconciler.pending_pull
        if self.sessions.session is not before and scheduled is not None:
            # The refresh already scheduled a pull through the renewal listener.
            return await scheduled
        return await self.reconciler.pull_all()

    async def aclose(self) -> None:
        self.dispatcher.cancel()
        await self.tasks.drain()
        if self.dispatcher.current is not None and self.dispatcher.current.task is not None:
            try:
                await self.dispatcher.current.wait()
            except Exception:
                logger.exception("Bulk dispatch did not stop cleanly")
        if self.remote is not None:
            await self.remote.aclose()
        self.engine.dispose()
