"""
tests/conftest.py -- Shared test fixtures for ClassHub tests.

This module provides:
  - FakeClock: a settable clock for expiry tests
  - make_manager(): SessionManager over a fresh in-memory database
  - _patch_lifespan(): wires a test SessionManager into app.state
  - api_client / web_client: module-scoped TestClients with seeded users
  - api / web: function-scoped wrappers that start every test with an
    empty cookie jar

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
TestClient fixtures because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread.

DEBUG, ALLOWED_HOSTS and LOGIN_RATE_LIMIT must be set before any app import:
get_settings() is cached on first call.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import Role, User
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, create_store_engine
from auth.tokens import hash_password

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"

# Hashed once per session -- bcrypt is deliberately slow.
PASSWORDS = {
    "admin1": "correct",
    "guru1": "guru-password",
    "siswa1": "siswa-password",
}
_HASHES = {username: hash_password(pw) for username, pw in PASSWORDS.items()}
_ROLES = {"admin1": Role.ADMIN, "guru1": Role.GURU, "siswa1": Role.SISWA}
_FULL_NAMES = {"admin1": "Admin Satu", "guru1": "Guru Satu", "siswa1": "Siswa Satu"}


class FakeClock:
    """Callable clock for SessionManager; tests move time explicitly."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def seed_users(store: UserStore) -> dict[str, int]:
    """Create admin1 / guru1 / siswa1 and return {username: id}."""
    ids = {}
    for username in PASSWORDS:
        ids[username] = store.create_user(
            User(
                username=username,
                password_hash=_HASHES[username],
                role=_ROLES[username],
                full_name=_FULL_NAMES[username],
            )
        )
    return ids


def make_manager(db_url: str = "sqlite:///:memory:", clock=None) -> SessionManager:
    engine = create_store_engine(db_url)
    kwargs = {"clock": clock} if clock is not None else {}
    return SessionManager(UserStore(engine), SessionStore(engine), secret_key=TEST_SECRET, **kwargs)


def _patch_lifespan(manager: SessionManager):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.session_manager = manager
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _client_fixture(db_suffix: str, **client_kwargs) -> Generator[tuple[TestClient, SessionManager, dict], None, None]:
    db_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    manager = make_manager(db_url)
    ids = seed_users(manager.users)
    app.router.lifespan_context = _patch_lifespan(manager)
    with TestClient(app, raise_server_exceptions=True, **client_kwargs) as client:
        yield client, manager, ids
    manager.users.engine.dispose()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, SessionManager, dict], None, None]:
    """Yield (client, manager, user_ids) for API integration tests."""
    yield from _client_fixture("api")


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, SessionManager, dict], None, None]:
    """Yield (client, manager, user_ids) for page route tests.

    follow_redirects=False is essential: we assert on redirect *locations*,
    which are invisible once the client follows the redirect.
    """
    yield from _client_fixture("web", follow_redirects=False)


@pytest.fixture
def api(api_client):
    client, _manager, _ids = api_client
    client.cookies.clear()
    yield api_client
    client.cookies.clear()


@pytest.fixture
def web(web_client):
    client, _manager, _ids = web_client
    client.cookies.clear()
    yield web_client
    client.cookies.clear()
