"""Tests for the remote store client."""

import json

import httpx
import pytest

from nexus_crm.api.client import RemoteConfig, RemoteStoreClient, RemoteStoreError, eq
from tests.conftest import ANON_KEY, REMOTE_URL


@pytest.fixture
def config():
    return RemoteConfig(url=REMOTE_URL, anon_key=ANON_KEY, timeout=2.0)


class TestRemoteStoreError:
    """Tests for structured remote errors."""

    def test_from_response_with_code(self):
        resp = httpx.Response(
            403,
            json={"code": "42501", "message": "new row violates row-level security policy", "hint": None},
        )
        err = RemoteStoreError.from_response(resp)
        assert err.code == "42501"
        assert err.status_code == 403
        assert str(err) == "[42501] new row violates row-level security policy"

    def test_from_response_without_json(self):
        err = RemoteStoreError.from_response(httpx.Response(502, text="Bad gateway"))
        assert err.code is None
        assert err.message == "Bad gateway"


class TestRemoteStoreClient:
    """Tests for RemoteStoreClient requests."""

    @pytest.mark.asyncio
    async def test_select_all_sends_filters_and_auth(self, config, fake_remote):
        fake_remote.tables["leads"] = [{"id": "L-1"}]
        async with RemoteStoreClient(config, lambda: "user-token", transport=fake_remote.transport) as remote:
            rows = await remote.select_all(
                "leads",
                filters={"organization_id": eq("org-1")},
                order="timestamp.desc",
                limit=10,
            )

        assert rows == [{"id": "L-1"}]
        request = fake_remote.requests[0]
        assert request.url.path == "/rest/v1/leads"
        assert request.url.params["organization_id"] == "eq.org-1"
        assert request.url.params["order"] == "timestamp.desc"
        assert request.url.params["limit"] == "10"
        assert request.headers["Authorization"] == "Bearer user-token"
        assert request.headers["apikey"] == ANON_KEY

    @pytest.mark.asyncio
    async def test_falls_back_to_anon_key(self, config, fake_remote):
        async with RemoteStoreClient(config, lambda: None, transport=fake_remote.transport) as remote:
            await remote.select_all("leads")
        assert fake_remote.requests[0].headers["Authorization"] == f"Bearer {ANON_KEY}"

    @pytest.mark.asyncio
    async def test_select_with_count(self, config, fake_remote):
        fake_remote.tables["clients"] = [{"id": "C-1"}, {"id": "C-2"}]
        async with RemoteStoreClient(config, transport=fake_remote.transport) as remote:
            rows, total = await remote.select_with_count("clients")
        assert len(rows) == 2
        assert total == 2
        assert fake_remote.requests[0].headers["Prefer"] == "count=exact"

    @pytest.mark.asyncio
    async def test_upsert(self, config, fake_remote):
        async with RemoteStoreClient(config, transport=fake_remote.transport) as remote:
            await remote.upsert("leads", {"id": "L-1", "name": "Acme"})

        request = fake_remote.requests[0]
        assert request.method == "POST"
        assert request.url.params["on_conflict"] == "id"
        assert "merge-duplicates" in request.headers["Prefer"]
        assert json.loads(request.content) == {"id": "L-1", "name": "Acme"}

    @pytest.mark.asyncio
    async def test_delete(self, config, fake_remote):
        async with RemoteStoreClient(config, transport=fake_remote.transport) as remote:
            await remote.delete("leads", "L-1")
        assert fake_remote.deletes == [("leads", "eq.L-1")]

    @pytest.mark.asyncio
    async def test_error_status_raises(self, config, fake_remote):
        fake_remote.fail("POST", "leads", 400, {"code": "22P02", "message": "invalid input syntax for type uuid"})
        async with RemoteStoreClient(config, transport=fake_remote.transport) as remote:
            with pytest.raises(RemoteStoreError) as exc_info:
                await remote.upsert("leads", {"id": "bad"})
        assert exc_info.value.code == "22P02"

    @pytest.mark.asyncio
    async def test_non_json_body_raises_store_error(self, config, fake_remote):
        fake_remote.raw_bodies["tickets"] = (200, "<html>gateway</html>")
        async with RemoteStoreClient(config, transport=fake_remote.transport) as remote:
            with pytest.raises(RemoteStoreError) as exc_info:
                await remote.select_all("tickets")
        assert exc_info.value.status_code == 200
        assert "not JSON" in exc_info.value.message
