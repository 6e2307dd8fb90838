"""
tests/conftest.py -- Shared test fixtures for the OTP auth service.

This module provides:
  - RecordingNotifier: in-memory stand-in for MailDispatcher; keeps every mail
  - FakeClock: settable clock for ChallengeEngine expiry tests
  - store / hasher / service: unit-test fixtures on a private in-memory DB
  - api_client: TestClient wired to isolated stores through a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures run on a single thread and use plain :memory:.

Environment must be set before any api/ import: get_settings() is cached and
the route modules read rate limits from it at import time.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any api/core import so the cached Settings see it.
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")
os.environ.setdefault("API_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.otp import ChallengeEngine
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from lessons.store import LessonStore

TEST_SECRET = os.environ["SECRET_KEY"]

_CODE_RE = re.compile(r"code is: (\d+)")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """Collects (destination, subject, body) tuples instead of sending mail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send(self, destination: str, subject: str, body: str) -> bool:
        self.sent.append((destination, subject, body))
        return True

    def sent_to(self, destination: str) -> list[tuple[str, str, str]]:
        return [m for m in self.sent if m[0] == destination]

    def last_code(self, destination: str) -> str:
        """Return the code from the most recent mail to destination."""
        mails = self.sent_to(destination)
        assert mails, f"no mail was sent to {destination}"
        match = _CODE_RE.search(mails[-1][2])
        assert match, f"no code in mail body: {mails[-1][2]!r}"
        return match.group(1)


class FakeClock:
    """Aware-UTC clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[IdentityStore, None, None]:
    s = IdentityStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, expire_seconds=3600)


@pytest.fixture
def engine(store: IdentityStore, clock: FakeClock) -> ChallengeEngine:
    return ChallengeEngine(store, ttl_seconds=600, code_length=6, clock=clock)


@pytest.fixture
def service(
    store: IdentityStore,
    hasher: PasswordHasher,
    engine: ChallengeEngine,
    issuer: TokenIssuer,
    notifier: RecordingNotifier,
) -> AuthService:
    return AuthService(store=store, hasher=hasher, challenges=engine, tokens=issuer, notifier=notifier)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[IdentityStore, LessonStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_otpauth_{db_suffix}?mode=memory&cache=shared&uri=true"
    return IdentityStore(url), LessonStore(url)


def _patch_lifespan(identity_store: IdentityStore, lesson_store: LessonStore, notifier: RecordingNotifier):
    """Return an async context manager that replaces the real lifespan.

    Wires the test stores and the recording notifier into app.state so routes
    never touch the production database or an SMTP server.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        issuer = TokenIssuer(TEST_SECRET, expire_seconds=3600)
        app.state.identity_store = identity_store
        app.state.lesson_store = lesson_store
        app.state.token_issuer = issuer
        app.state.auth_service = AuthService(
            store=identity_store,
            hasher=PasswordHasher(rounds=4),
            challenges=ChallengeEngine(identity_store),
            tokens=issuer,
            notifier=notifier,
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, RecordingNotifier], None, None]:
    """Yield (client, notifier) for API integration tests.

    One TestClient per test module; each module gets its own database.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    identity_store, lesson_store = _make_test_stores(suffix)
    notifier = RecordingNotifier()

    app.router.lifespan_context = _patch_lifespan(identity_store, lesson_store, notifier)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, notifier

    identity_store.close()
    lesson_store.close()


@pytest.fixture
def signup(api_client):
    """Return a helper that drives register -> verify-otp and returns the bearer token."""
    client, notifier = api_client

    def _signup(email: str, password: str) -> str:
        resp = client.post("/api/v1/auth/register", json={"email": email, "password": password})
        assert resp.status_code == 201, resp.text
        resp = client.post("/api/v1/auth/verify-otp", json={"email": email, "otp": notifier.last_code(email)})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _signup

