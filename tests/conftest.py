"""
tests/conftest.py -- Shared test fixtures for usergate tests.

This module provides:
  - store:          isolated in-memory UserStore per test
  - user:           a registered user (EMAIL / PASSWORD) in that store
  - codec:          TokenCodec with a fixed test signing key
  - client:         TestClient wired to the store and codec via a patched lifespan
  - failing_client: TestClient whose store raises on every lookup

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the app runs store lookups in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

The environment must be prepared before any api/auth/core import:
  DEBUG=true               get_settings() auto-generates SECRET_KEY
  RATE_LIMIT_ENABLED=false the login limiter would trip across many tests
  ALLOWED_HOSTS=["*"]      TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.session import IdentityResolver
from auth.store import UserStore
from auth.tokens import TokenCodec, hash_password
from tests.helpers import EMAIL, PASSWORD, TEST_SIGNING_KEY, FailingStore


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(store, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires the given store and codec into app.state so routes see the test
    store rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.token_codec = codec
        app.state.resolver = IdentityResolver(store, codec)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore(db_url=_memory_url())
    yield s
    s.close()


@pytest.fixture
def user(store: UserStore) -> User:
    """The registered user: EMAIL / PASSWORD, display name 'Ada'."""
    uid = store.create_user(User(email=EMAIL, display_name="Ada"), hash_password(PASSWORD))
    return store.get_by_id(uid)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SIGNING_KEY)


@pytest.fixture
def resolver(store: UserStore, codec: TokenCodec) -> IdentityResolver:
    return IdentityResolver(store, codec)


@pytest.fixture
def client(store: UserStore, codec: TokenCodec) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a patched lifespan."""
    app.router.lifespan_context = _patch_lifespan(store, codec)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def failing_client(codec: TokenCodec) -> Generator[TestClient, None, None]:
    """TestClient whose store is unreachable.

    raise_server_exceptions=False so unhandled errors come back as the 500
    the catch-all handler produces instead of being re-raised into the test.
    """
    app.router.lifespan_context = _patch_lifespan(FailingStore(), codec)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
