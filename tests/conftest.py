"""
tests/conftest.py -- Shared test fixtures for Trailpass.

This module provides:
  - store / service: an AuthService over a private in-memory database (unit tests)
  - api_client: TestClient over the real app with a patched lifespan (integration tests)

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any core/auth/api import: DEBUG lets
get_settings() auto-generate SECRET_KEY, BCRYPT_ROUNDS=4 keeps hashing fast,
and a generous login limit keeps the rate limiter out of the way.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthConfig, AuthService
from auth.store import UserStore
from tests.helpers import TEST_SECRET, FakeClock, FakeMailer

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        secret_key=TEST_SECRET,
        is_production=False,
        token_ttl_seconds=3600,
        cookie_expire_days=90,
        bcrypt_rounds=4,
        reset_token_ttl_seconds=600,
    )


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, mailer: FakeMailer, config: AuthConfig, clock: FakeClock) -> AuthService:
    return AuthService(store, mailer, config, clock=clock)


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, service: AuthService):
    """Return a lifespan that wires pre-built test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService, FakeMailer], None, None]:
    """Yield (client, service, mailer) for API integration tests.

    One client per test module for speed; tests use distinct emails so they
    do not collide in the shared database.
    """
    store = UserStore(db_url="sqlite:///file:test_auth_api?mode=memory&cache=shared&uri=true")
    mailer = FakeMailer()
    service = AuthService(
        store,
        mailer,
        AuthConfig(secret_key=TEST_SECRET, token_ttl_seconds=3600, cookie_expire_days=90, bcrypt_rounds=4),
    )
    app.router.lifespan_context = _patch_lifespan(store, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service, mailer

    store.close()
