"""Tests for AppContext wiring and startup."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from nexus_crm.auth.storage import SessionStorage
from nexus_crm.config import NexusSettings
from nexus_crm.context import AppContext
from nexus_crm.tasks import BackgroundTasks
from tests.conftest import make_session


class TestAppContext:
    """Tests for AppContext."""

    @pytest.mark.asyncio
    async def test_start_hydrates_and_pulls(self, test_settings, fake_remote):
        fake_remote.tables["leads"] = [{"id": "L-1", "organization_id": "org-1"}]
        storage = SessionStorage(test_settings.session_path)
        storage.save(make_session())
        ctx = AppContext.build(test_settings, session_storage=storage, remote_transport=fake_remote.transport)
        try:
            result = await ctx.start()
            assert result.skipped is False
            assert ctx.store.get("leads") == [{"id": "L-1", "organizationId": "org-1"}]
        finally:
            await ctx.aclose()

    @pytest.mark.asyncio
    async def test_start_with_expired_session_pulls_once(self, test_settings, fake_remote):
        fake_remote.token_response = (
            200,
            {
                "access_token": "refreshed",
                "refresh_token": "refresh-789",
                "expires_in": 3600,
                "user": {"id": "user-ana", "email": "ana@nexus.test", "user_metadata": {"organization_id": "org-1"}},
            },
        )
        storage = SessionStorage(test_settings.session_path)
        storage.save(make_session(expires_at=1))
        ctx = AppContext.build(test_settings, session_storage=storage, remote_transport=fake_remote.transport)
        try:
            result = await ctx.start()
            await ctx.tasks.drain()
            assert result is not None and result.skipped is False
            assert ctx.reconciler.last_result is result
            lead_pulls = [r for r in fake_remote.data_requests() if r.url.path.endswith("/leads")]
            assert len(lead_pulls) == 1
        finally:
            await ctx.aclose()

    @pytest.mark.asyncio
    async def test_start_offline_without_session(self, test_settings, fake_remote):
        ctx = AppContext.build(
            test_settings,
            session_storage=SessionStorage(test_settings.session_path),
            remote_transport=fake_remote.transport,
        )
        try:
            assert await ctx.start() is None
            assert ctx.store.get("organizations")
            assert fake_remote.requests == []
        finally:
            await ctx.aclose()

    @pytest.mark.asyncio
    async def test_local_only_without_remote_settings(self, tmp_path):
        config = NexusSettings(
            local_database_url=f"sqlite:///{tmp_path / 'local.db'}",
            remote_url="",
            remote_anon_key="",
            session_dir=str(tmp_path),
        )
        ctx = AppContext.build(config)
        try:
            assert ctx.remote is None
            assert ctx.reconciler.can_sync() is False
        finally:
            await ctx.aclose()

    @pytest.mark.asyncio
    async def test_session_renewal_schedules_pull(self, app_context, fake_remote):
        app_context.sessions._auth_client = MagicMock()
        app_context.sessions._auth_client.sign_in_with_password = AsyncMock(return_value=make_session())

        await app_context.sessions.sign_in("ana@nexus.test", "secret")
        await app_context.tasks.drain()

        assert app_context.reconciler.last_result is not None
        assert fake_remote.data_requests()

    @pytest.mark.asyncio
    async def test_snapshots_survive_restart(self, test_settings):
        storage = SessionStorage(test_settings.session_path)
        first = AppContext.build(test_settings, session_storage=storage)
        await first.start(pull=False)
        first.data.add(None, "leads", {"id": "L-1", "name": "Acme"})
        await first.aclose()

        second = AppContext.build(test_settings, session_storage=storage)
        try:
            await second.start(pull=False)
            assert second.store.find("leads", "L-1") == {"id": "L-1", "name": "Acme"}
        finally:
            await second.aclose()


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    @pytest.mark.asyncio
    async def test_drain_waits_for_spawned(self):
        tasks = BackgroundTasks()
        done = []

        async def work():
            done.append(True)

        tasks.spawn(work(), name="work")
        await tasks.drain()
        assert done == [True]
        assert len(tasks) == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        tasks = BackgroundTasks()

        async def boom():
            raise RuntimeError("boom")

        tasks.spawn(boom(), name="boom")
        await tasks.drain()
        assert any("boom" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_cancel_all_stops_pending(self):
        tasks = BackgroundTasks()

        async def forever():
            await asyncio.sleep(3600)

        task = tasks.spawn(forever(), name="forever")
        await asyncio.sleep(0)
        await tasks.cancel_all()
        assert task.cancelled()
        assert len(tasks) == 0
