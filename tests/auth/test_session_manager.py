"""Tests for session storage, the auth client and SessionManager."""

import os
import stat
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from nexus_crm.auth.client import AuthClient, AuthError, session_from_token_response
from nexus_crm.auth.manager import SessionManager
from nexus_crm.auth.storage import SessionData, SessionStorage
from tests.conftest import ANON_KEY, REMOTE_URL, SAMPLE_EMAIL, make_session

TOKEN_RESPONSE = {
    "access_token": "new-access",
    "refresh_token": "new-refresh",
    "expires_in": 3600,
    "user": {
        "id": "user-ana",
        "email": SAMPLE_EMAIL,
        "user_metadata": {"name": "Ana", "organization_id": "org-1", "role": "admin"},
    },
}


class TestSessionStorage:
    """Tests for the session file."""

    def test_load_missing(self, session_storage):
        assert session_storage.load() is None

    def test_save_and_load(self, session_storage):
        session = make_session()
        session_storage.save(session)
        assert session_storage.load() == session

    def test_file_permissions(self, session_storage):
        session_storage.save(make_session())
        mode = stat.S_IMODE(os.stat(session_storage.path).st_mode)
        assert mode == 0o600

    def test_corrupt_file_returns_none(self, session_storage):
        session_storage.path.parent.mkdir(parents=True, exist_ok=True)
        session_storage.path.write_text("{broken")
        assert session_storage.load() is None

    def test_clear(self, session_storage):
        session_storage.save(make_session())
        session_storage.clear()
        assert session_storage.load() is None

    def test_is_expired(self):
        assert make_session(expires_at=int(datetime.now().timestamp()) - 10).is_expired is True
        assert make_session().is_expired is False


class TestAuthClient:
    """Tests for token grants."""

    def test_session_from_token_response(self):
        session = session_from_token_response(TOKEN_RESPONSE)
        assert session.access_token == "new-access"
        assert session.organization_id == "org-1"
        assert session.user_name == "Ana"
        assert session.expires_in_seconds > 3500

    @pytest.mark.asyncio
    async def test_password_grant(self, fake_remote):
        fake_remote.token_response = (200, TOKEN_RESPONSE)
        client = AuthClient(REMOTE_URL, ANON_KEY, transport=fake_remote.transport)

        session = await client.sign_in_with_password(SAMPLE_EMAIL, "secret")

        request = fake_remote.requests[0]
        assert request.url.params["grant_type"] == "password"
        assert request.headers["apikey"] == ANON_KEY
        assert session.email == SAMPLE_EMAIL

    @pytest.mark.asyncio
    async def test_rejected_grant_raises(self, fake_remote):
        fake_remote.token_response = (400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
        client = AuthClient(REMOTE_URL, ANON_KEY, transport=fake_remote.transport)

        with pytest.raises(AuthError) as exc_info:
            await client.sign_in_with_password(SAMPLE_EMAIL, "wrong")
        assert exc_info.value.error_code == "invalid_grant"
        assert "Invalid login credentials" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_refresh_requires_token(self):
        client = AuthClient(REMOTE_URL, ANON_KEY)
        with pytest.raises(AuthError):
            await client.refresh("")


class TestSessionManager:
    """Tests for SessionManager."""

    def test_signed_out(self, signed_out):
        assert signed_out.has_live_session() is False
        assert signed_out.access_token() is None
        assert signed_out.current_tenant() is None
        assert signed_out.current_actor() is None

    def test_signed_in(self, signed_in):
        assert signed_in.has_live_session() is True
        assert signed_in.access_token() == "access-123"
        assert signed_in.current_tenant() == "org-1"
        actor = signed_in.current_actor()
        assert actor.id == "user-ana"
        assert actor.organization_id == "org-1"

    def test_platform_admin(self, signed_in):
        assert signed_in.is_platform_admin({SAMPLE_EMAIL}) is True
        assert signed_in.is_platform_admin({"root@nexus.test"}) is False

    @pytest.mark.asyncio
    async def test_sign_in_saves_and_notifies(self, session_storage):
        auth_client = MagicMock()
        auth_client.sign_in_with_password = AsyncMock(return_value=make_session(access_token="fresh"))
        manager = SessionManager(storage=session_storage, auth_client=auth_client)
        events = []
        manager.on_session_renewed(events.append)

        await manager.sign_in(SAMPLE_EMAIL, "secret")

        assert events == ["signed_in"]
        assert session_storage.load().access_token == "fresh"
        assert manager.access_token() == "fresh"

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self, session_storage):
        auth_client = MagicMock()
        auth_client.sign_in_with_password = AsyncMock(return_value=make_session())
        manager = SessionManager(storage=session_storage, auth_client=auth_client)
        listener = AsyncMock()
        manager.on_session_renewed(listener)

        await manager.sign_in(SAMPLE_EMAIL, "secret")

        listener.assert_awaited_once_with("signed_in")

    @pytest.mark.asyncio
    async def test_sign_in_without_provider(self, signed_out):
        with pytest.raises(AuthError):
            await signed_out.sign_in(SAMPLE_EMAIL, "secret")

    @pytest.mark.asyncio
    async def test_ensure_fresh_refreshes_expired_session(self, session_storage):
        session_storage.save(make_session(expires_at=1))
        auth_client = MagicMock()
        auth_client.refresh = AsyncMock(return_value=make_session(access_token="refreshed"))
        manager = SessionManager(storage=session_storage, auth_client=auth_client)
        events = []
        manager.on_session_renewed(events.append)

        assert await manager.ensure_fresh() is True
        auth_client.refresh.assert_awaited_once_with("refresh-456")
        assert events == ["token_refreshed"]

    @pytest.mark.asyncio
    async def test_failed_refresh_leaves_session_dead(self, session_storage):
        session_storage.save(make_session(expires_at=1))
        auth_client = MagicMock()
        auth_client.refresh = AsyncMock(side_effect=AuthError("expired", error_code="invalid_grant"))
        manager = SessionManager(storage=session_storage, auth_client=auth_client)

        assert await manager.ensure_fresh() is False

    def test_sign_out(self, signed_in, session_storage):
        signed_in.sign_out()
        assert signed_in.has_live_session() is False
        assert session_storage.load() is None
