"""
core/database.py -- Database handle and relational schema for ProfileDash.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py and
cards/models.py remain the authoritative domain representation. Swapping
SQLite for PostgreSQL is a connection string change, not a rewrite.

The handle is constructed explicitly (API lifespan, CLI, tests) and passed to
every store. There is no module-level engine: whoever builds a Database owns
it and closes it.

Referential cleanup is done by the stores in explicit order inside one
transaction (see UserStore.delete_user, CardStore.delete_card), so the schema
declares no ON DELETE cascades.

Security: all queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/, auth/, or cards/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("profiledash.database")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # bcrypt, never plaintext
    Column("role", String(20), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# session_id is HMAC-SHA256(SECRET_KEY, raw token). UNIQUE(user_id) makes the
# single-session-per-user policy hold even when two logins race.
user_sessions = Table(
    "user_sessions",
    metadata,
    Column("session_id", String(64), primary_key=True),
    Column("user_id", Integer, nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)

cards = Table(
    "cards",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("type", String(100), nullable=False),  # "LinkedIn", "Degree", ...
    Column("progress", Integer, nullable=False, server_default="0"),
    Column("assigned_user_id", Integer),  # NULL = unassigned
    Column("created_by", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint("progress >= 0 AND progress <= 100", name="ck_cards_progress"),
    Index("ix_cards_assigned_user_id", "assigned_user_id"),
)

card_details = Table(
    "card_details",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("card_id", Integer, nullable=False),
    Column("position", Integer, nullable=False, server_default="0"),
    Column("field_name", String(255), nullable=False),
    Column("field_value", Text),
    Column("file_url", Text),
    Column("created_at", String(32), nullable=False),
    Index("ix_card_details_card_id", "card_id"),
)

files = Table(
    "files",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("card_id", Integer, nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("file_url", Text, nullable=False),
    Column("file_size", Integer),
    Column("mime_type", String(255)),
    Column("uploaded_by", Integer),
    Column("created_at", String(32), nullable=False),
    Index("ix_files_card_id", "card_id"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    """Current UTC time as ISO 8601 with fixed microsecond precision.

    Fixed precision keeps the strings lexically sortable, which the card list
    relies on for created_at ordering.
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------


class Database:
    """Owns the SQLAlchemy engine and the schema.

    Usage:
        db = Database("sqlite:///profiledash.db")
        with db.transaction() as conn:
            conn.execute(...)
        db.close()
    """

    def __init__(self, db_url: str) -> None:
        self.url = db_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so one pooled
            # connection may be used from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def connect(self) -> Connection:
        """Plain connection for reads and single-statement writes (caller commits)."""
        return self.engine.connect()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """All-or-nothing block: commits on success, rolls back on any exception."""
        with self.engine.begin() as conn:
            yield conn

    def check_connection(self) -> bool:
        """Return True if a trivial query succeeds. Used by health and setup status."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database connection check failed")
            return False

    def close(self) -> None:
        self.engine.dispose()
