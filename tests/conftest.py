"""
tests/conftest.py -- Shared test fixtures for the Tracker test suite.

This module provides:
  - FakeClock: a settable clock for token expiry tests
  - hasher / codec / store / service: isolated core objects per test
  - api_client: TestClient over the real FastAPI app with an in-memory store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API client because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

Environment variables must be set before any api/ import: api.main reads
Settings at import time to configure middleware.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set these before any api/core import so get_settings() can
# auto-generate SECRET_KEY and the TestClient host passes TrustedHost.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from auth.models import RegistrationInput
from auth.passwords import CredentialHasher
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenCodec, TokenConfig

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
TOKEN_WINDOW = 24 * 60 * 60


class FakeClock:
    """Callable clock whose current time the test controls."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _asha(**overrides) -> RegistrationInput:
    """Registration input for the canonical example account."""
    fields = {
        "full_name": "Asha Rao",
        "department": "Eng",
        "emp_id": "E100",
        "password": "secret1",
        "confirm_password": "secret1",
        "mobile_no": "9998887776",
        "company_email": "asha@co.com",
    }
    fields.update(overrides)
    return RegistrationInput(**fields)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_registration():
    """Factory for RegistrationInput; keyword overrides replace the example account fields."""
    return _asha


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> CredentialHasher:
    """Minimum bcrypt cost keeps the suite fast; behaviour is identical."""
    return CredentialHasher(rounds=4)


@pytest.fixture
def codec(clock: FakeClock) -> TokenCodec:
    return TokenCodec(TokenConfig(secret_key=TEST_SECRET, expire_seconds=TOKEN_WINDOW), clock=clock)


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def file_store(tmp_path) -> Generator[AccountStore, None, None]:
    """File-backed store for tests that hit the database from several threads."""
    s = AccountStore(f"sqlite:///{tmp_path / 'accounts.db'}")
    yield s
    s.close()


@pytest.fixture
def service(store: AccountStore, hasher: CredentialHasher, codec: TokenCodec) -> AuthService:
    return AuthService(store, hasher, codec)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test store and service into app.state so routes see
    an isolated database instead of the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use an isolated in-memory store.
    The database name is derived from the test module so modules never
    share accounts.
    """
    from api.main import app

    db_name = request.module.__name__.replace(".", "_")
    store = AccountStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    codec = TokenCodec(TokenConfig(secret_key=TEST_SECRET, expire_seconds=TOKEN_WINDOW))
    service = AuthService(store, CredentialHasher(rounds=4), codec)

    app.router.lifespan_context = _patch_lifespan(store, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service

    store.close()
