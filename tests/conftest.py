"""Shared test fixtures for the Nexus CRM test suite."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import httpx
import pytest
import pytest_asyncio
from typer.testing import CliRunner

from nexus_crm.auth.manager import SessionManager
from nexus_crm.auth.storage import SessionData, SessionStorage
from nexus_crm.config import NexusSettings
from nexus_crm.context import AppContext
from nexus_crm.database import create_local_engine, create_session_factory
from nexus_crm.schemas.entities import Actor
from nexus_crm.store.local_store import LocalStore
from nexus_crm.store.snapshot_repo import SnapshotRepository

SAMPLE_ORG_ID = "org-1"
SAMPLE_USER_ID = "user-ana"
SAMPLE_EMAIL = "ana@nexus.test"
REMOTE_URL = "https://remote.test"
ANON_KEY = "anon-key"


# ============================================================================
# Fake remote store
# ============================================================================


class FakeRemote:
    """In-memory PostgREST stand-in served through httpx.MockTransport.

    ``tables`` holds rows returned by selects. ``errors`` maps
    (method, table) to a queue of (status, body) responses consumed in order.
    Tables in ``unreachable`` raise a connection error.
    ``raw_bodies`` maps a table to a (status, text) reply for selects.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.errors: dict[tuple[str, str], list[tuple[int, dict]]] = {}
        self.unreachable: set[str] = set()
        self.upserts: list[tuple[str, dict[str, Any]]] = []
        self.deletes: list[tuple[str, str]] = []
        self.token_response: tuple[int, dict] | None = None
        self.raw_bodies: dict[str, tuple[int, str]] = {}

    def fail(self, method: str, table: str, status: int, body: dict, times: int = 1) -> None:
        self.errors.setdefault((method, table), []).extend([(status, body)] * times)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/auth/v1/token"):
            status, body = self.token_response or (400, {"error": "invalid_grant"})
            return httpx.Response(status, json=body)

        table = path.rsplit("/", 1)[-1]
        if table in self.unreachable:
            raise httpx.ConnectError("remote unreachable", request=request)

        if request.method == "GET" and table in self.raw_bodies:
            status, text = self.raw_bodies[table]
            return httpx.Response(status, text=text)

        queued = self.errors.get((request.method, table))
        if queued:
            status, body = queued.pop(0)
            return httpx.Response(status, json=body)

        if request.method == "GET":
            rows = self.tables.get(table, [])
            return httpx.Response(
                200,
                json=rows,
                headers={"Content-Range": f"0-{max(len(rows) - 1, 0)}/{len(rows)}"},
            )
        if request.method == "POST":
            self.upserts.append((table, json.loads(request.content)))
            return httpx.Response(201)
        if request.method == "DELETE":
            self.deletes.append((table, request.url.params.get("id", "")))
            return httpx.Response(204)
        return httpx.Response(405)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def data_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/rest/v1/")]


# ============================================================================
# Fixtures
# ============================================================================


def make_session(**overrides) -> SessionData:
    data = {
        "access_token": "access-123",
        "refresh_token": "refresh-456",
        "expires_at": int(datetime.now().timestamp()) + 3600,
        "user_id": SAMPLE_USER_ID,
        "email": SAMPLE_EMAIL,
        "user_name": "Ana",
        "organization_id": SAMPLE_ORG_ID,
        "role": "admin",
    }
    data.update(overrides)
    return SessionData(**data)


@pytest.fixture
def actor() -> Actor:
    return Actor(id=SAMPLE_USER_ID, name="Ana", email=SAMPLE_EMAIL, organization_id=SAMPLE_ORG_ID)


@pytest.fixture
def repository(tmp_path) -> SnapshotRepository:
    engine = create_local_engine(f"sqlite:///{tmp_path / 'snapshots.db'}", echo=False)
    yield SnapshotRepository(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def store(repository) -> LocalStore:
    local = LocalStore(repository)
    local.hydrate()
    return local


@pytest.fixture
def session_storage(tmp_path) -> SessionStorage:
    return SessionStorage(tmp_path / "session.json")


@pytest.fixture
def signed_in(session_storage) -> SessionManager:
    session_storage.save(make_session())
    return SessionManager(storage=session_storage)


@pytest.fixture
def signed_out(tmp_path) -> SessionManager:
    """Manager over its own empty storage, independent of signed_in."""
    return SessionManager(storage=SessionStorage(tmp_path / "signed-out" / "session.json"))


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def test_settings(tmp_path) -> NexusSettings:
    return NexusSettings(
        local_database_url=f"sqlite:///{tmp_path / 'nexus.db'}",
        remote_url=REMOTE_URL,
        remote_anon_key=ANON_KEY,
        session_dir=str(tmp_path / "session"),
        dispatch_min_delay_seconds=0.0,
        dispatch_max_delay_seconds=0.0,
        dispatch_poll_interval_seconds=0.01,
        toast_ttl_seconds=5.0,
    )


@pytest_asyncio.fixture
async def app_context(test_settings, fake_remote):
    """Fully wired context against the fake remote, signed in as org-1."""
    storage = SessionStorage(test_settings.session_path)
    storage.save(make_session())
    ctx = AppContext.build(
        test_settings,
        session_storage=storage,
        remote_transport=fake_remote.transport,
        webhook_transport=fake_remote.transport,
    )
    ctx.store.hydrate()
    yield ctx
    await ctx.aclose()


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
