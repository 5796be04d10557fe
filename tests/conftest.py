"""
Shared fixtures.

Every app under test is built around an explicit AppContext: a disposable
SQLite store under tmp_path, a fake identity verifier with two known users,
and an httpx.MockTransport standing in for the outbound targets.
"""
import os
import tempfile

# relay.app builds a default app at import time; point it somewhere harmless
os.environ.setdefault("MOCK_AUTH", "true")
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.gettempdir(), "relay_test_default.db"))
os.environ.setdefault("LOG_AS_JSON", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from relay.app import create_app
from relay.config import Settings
from relay.context import AppContext
from relay.errors import StoreFailure
from relay.identity import Identity, IdentityVerifier
from relay.store import RecordStore, SqlRecordStore

ALICE = {"Authorization": "Bearer token-alice"}
BOB = {"Authorization": "Bearer token-bob"}


class FakeVerifier(IdentityVerifier):
    TOKENS = {
        "token-alice": Identity(id="alice", email="alice@example.com"),
        "token-bob": Identity(id="bob", email="bob@example.com"),
    }

    def __init__(self):
        self.calls = []

    async def verify(self, token):
        self.calls.append(token)
        return self.TOKENS.get(token)


class RecordingStore(RecordStore):
    """Delegates to a real store and remembers every call."""

    def __init__(self, inner: RecordStore):
        self.inner = inner
        self.calls = []

    async def insert(self, table, values):
        self.calls.append(("insert", table, dict(values)))
        return await self.inner.insert(table, values)

    async def select(self, table, filters, order_by=None, descending=False, limit=None):
        self.calls.append(("select", table, dict(filters)))
        return await self.inner.select(table, filters, order_by=order_by, descending=descending, limit=limit)

    async def delete(self, table, filters):
        self.calls.append(("delete", table, dict(filters)))
        await self.inner.delete(table, filters)


class FailingStore(RecordStore):
    async def insert(self, table, values):
        raise StoreFailure("store down")

    async def select(self, table, filters, order_by=None, descending=False, limit=None):
        raise StoreFailure("store down")

    async def delete(self, table, filters):
        raise StoreFailure("store down")


class Upstream:
    """Programmable outbound target; records every request it receives."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json={"ok": True})

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite:///{tmp_path}/relay.db", relay_timeout_seconds=2.0)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def store(settings):
    return RecordingStore(SqlRecordStore(settings.database_url))


@pytest.fixture
def context(settings, store, verifier, upstream):
    return AppContext.from_settings(
        settings, store=store, verifier=verifier, relay_transport=httpx.MockTransport(upstream)
    )


@pytest.fixture
def client(context):
    return TestClient(create_app(context))
