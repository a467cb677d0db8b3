"""
tests/conftest.py -- Shared test fixtures for ProfileDash.

This module provides:
  - make_database(): isolated named shared-memory SQLite Database handles
  - db / user_store / sessions / card_store: per-test unit fixtures
  - api_client: module-scoped TestClient with a superadmin, an admin and a
    regular user already logged in

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread. The
named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth import so
get_settings() sees them: DEBUG auto-generates SECRET_KEY, ALLOWED_HOSTS
admits TestClient's "testserver" host, and LOGIN_RATE_LIMIT is raised so the
login tests never trip the limiter.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_USER, User
from auth.sessions import SessionManager
from auth.store import UserStore
from cards.blob import LocalBlobStore
from cards.store import CardStore
from core.database import Database

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_database(prefix: str) -> Database:
    """Return a Database on a fresh named in-memory SQLite instance."""
    name = f"test_{prefix}_{uuid.uuid4().hex}"
    return Database(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


class FakeClock:
    """Settable clock for SessionManager; starts at a fixed UTC instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Unit fixtures -- fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = make_database("unit")
    yield database
    database.close()


@pytest.fixture
def user_store(db: Database) -> UserStore:
    return UserStore(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(db: Database, clock: FakeClock) -> SessionManager:
    return SessionManager(db, duration_seconds=3600, clock=clock)


@pytest.fixture
def card_store(db: Database) -> CardStore:
    return CardStore(db)


@pytest.fixture
def admin(user_store: UserStore) -> User:
    return user_store.create_user("Ada Admin", "admin@example.com", "adminpass123", ROLE_ADMIN)


@pytest.fixture
def alice(user_store: UserStore) -> User:
    return user_store.create_user("Alice", "alice@example.com", "alicepass123", ROLE_USER)


@pytest.fixture
def bob(user_store: UserStore) -> User:
    return user_store.create_user("Bob", "bob@example.com", "bobpass123", ROLE_USER)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    """Everything an API test needs: the client, the stores, and three logged-in accounts."""

    client: TestClient
    db: Database
    user_store: UserStore
    sessions: SessionManager
    cards: CardStore
    upload_dir: Path
    superadmin: User
    superadmin_token: str
    admin: User
    admin_token: str
    user: User
    user_token: str

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


def _patch_lifespan(
    db: Database,
    user_store: UserStore,
    sessions: SessionManager,
    card_store: CardStore,
    blob_store: LocalBlobStore,
):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see an
    isolated test DB. The purge_task is a long-sleeping coroutine so shutdown
    has a real asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.db = db
        app.state.database_ok = True
        app.state.user_store = user_store
        app.state.sessions = sessions
        app.state.cards = card_store
        app.state.blob_store = blob_store
        app.state.setup_required = not user_store.has_users()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory: pytest.TempPathFactory) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by a module-private database.

    Tokens are issued directly through SessionManager. A login through the
    API for one of these accounts would revoke its fixture token, so tests
    that exercise login create their own accounts.
    """
    database = make_database("api")
    user_store = UserStore(database)
    sessions = SessionManager(database)
    card_store = CardStore(database)
    upload_dir = tmp_path_factory.mktemp("uploads")
    blob_store = LocalBlobStore(upload_dir, "/files")

    superadmin = user_store.create_user("Root", "root@example.com", "rootpass123", ROLE_SUPERADMIN)
    admin = user_store.create_user("Ada Admin", "ada@example.com", "adminpass123", ROLE_ADMIN)
    user = user_store.create_user("Uma User", "uma@example.com", "userpass123", ROLE_USER)

    app.router.lifespan_context = _patch_lifespan(database, user_store, sessions, card_store, blob_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            db=database,
            user_store=user_store,
            sessions=sessions,
            cards=card_store,
            upload_dir=upload_dir,
            superadmin=superadmin,
            superadmin_token=sessions.create_session(superadmin),
            admin=admin,
            admin_token=sessions.create_session(admin),
            user=user,
            user_token=sessions.create_session(user),
        )

    database.close()
