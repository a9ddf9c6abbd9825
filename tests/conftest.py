"""
tests/conftest.py -- Shared test fixtures for ProductAPI auth tests.

This module provides:
  - FakeClock: a controllable time source for expiry boundaries
  - store / clock / service: a unit-level AuthService over an in-memory store
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient against the real app with an isolated database

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Signing configuration must be in the environment before any module calls
get_settings(). BCRYPT_ROUNDS=4 keeps hashing fast; the cost factor does not
change behaviour.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set signing config before any auth/core import.
os.environ.setdefault("SECRET_KEY", "test-signing-secret-" + "0123456789abcdef" * 5)
os.environ.setdefault("JWT_ISSUER", "productapi-test")
os.environ.setdefault("JWT_AUDIENCE", "productapi-test-clients")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.service import AuthService
from auth.store import UserStore
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to.

    Starts at the real current time so tokens it stamps are also valid for
    python-jose, which checks exp against the wall clock.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, settings: Settings, clock: FakeClock) -> AuthService:
    return AuthService.from_settings(store, settings, clock=clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = AuthService.from_settings(user_store, get_settings())
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    One client per test module. base_url uses localhost so requests pass
    TrustedHostMiddleware.
    """
    module_db = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=module_db)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Each test starts with fresh login rate-limit counters."""
    limiter.reset()
