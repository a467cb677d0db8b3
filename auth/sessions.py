"""
auth/sessions.py -- Session issuance, resolution, and revocation.

A session is a row in user_sessions keyed by the HMAC of an opaque token. Its
lifecycle has exactly two states:

    Created --(expires_at passes | revoke_session)--> Invalid

There is no sliding expiration: resolving a session never writes.

Single session per user: create_session() deletes the user's existing rows
and inserts the new one in one transaction, and user_sessions.user_id is
UNIQUE, so two simultaneous logins for one account leave exactly one row.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from auth.models import Session, User
from auth.store import row_to_user
from auth.tokens import generate_session_token, hash_session_token
from core.database import Database, user_sessions, users
from core.errors import InternalError

logger = logging.getLogger("profiledash.auth.sessions")

DEFAULT_SESSION_SECONDS = 7 * 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class SessionManager:
    """Issues and validates login sessions backed by the user_sessions table.

    clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        db: Database,
        duration_seconds: int = DEFAULT_SESSION_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self.duration = timedelta(seconds=duration_seconds)
        self._clock = clock

    def create_session(self, user: User) -> str:
        """Start a new session for user and return the raw token.

        Any previous session for the same user stops resolving as soon as this
        returns.
        """
        token = generate_session_token()
        now = self._clock()
        try:
            with self._db.transaction() as conn:
                conn.execute(user_sessions.delete().where(user_sessions.c.user_id == user.id))
                conn.execute(
                    user_sessions.insert().values(
                        session_id=hash_session_token(token),
                        user_id=user.id,
                        expires_at=(now + self.duration).isoformat(timespec="microseconds"),
                        created_at=now.isoformat(timespec="microseconds"),
                    )
                )
        except IntegrityError as exc:
            # Another login for the same account committed between our
            # DELETE and INSERT; that session wins.
            raise InternalError("A concurrent login for this account is in progress. Try again.") from exc
        logger.info("Session created for user_id=%s", user.id)
        return token

    def get_session(self, token: str) -> Session | None:
        """Return the stored session row for token, expired or not.

        Housekeeping and inspection only: authorization must go through
        resolve_session(), which also enforces expiry.
        """
        if not token:
            return None
        with self._db.connect() as conn:
            row = conn.execute(
                user_sessions.select().where(user_sessions.c.session_id == hash_session_token(token))
            ).fetchone()
        if row is None:
            return None
        return Session(
            session_id=row.session_id,
            user_id=row.user_id,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )

    def resolve_session(self, token: str) -> User | None:
        """Return the session's user iff the session exists and has not expired."""
        if not token:
            return None
        with self._db.connect() as conn:
            row = conn.execute(
                select(users, user_sessions.c.expires_at)
                .join(user_sessions, user_sessions.c.user_id == users.c.id)
                .where(user_sessions.c.session_id == hash_session_token(token))
            ).fetchone()
        if row is None:
            return None
        if _parse_iso(row.expires_at) <= self._clock():
            return None
        return row_to_user(row)

    def revoke_session(self, token: str) -> None:
        """Delete the session for token. Idempotent."""
        if not token:
            return
        with self._db.transaction() as conn:
            result = conn.execute(
                user_sessions.delete().where(user_sessions.c.session_id == hash_session_token(token))
            )
        if result.rowcount:
            logger.info("Session revoked")

    def purge_expired(self) -> int:
        """Delete every expired session row and return how many were removed.

        Expired rows already fail resolve_session(); this only reclaims space.
        """
        now = self._clock()
        with self._db.connect() as conn:
            rows = conn.execute(select(user_sessions.c.session_id, user_sessions.c.expires_at)).fetchall()
        expired = [r.session_id for r in rows if _parse_iso(r.expires_at) <= now]
        if not expired:
            return 0
        with self._db.transaction() as conn:
            conn.execute(user_sessions.delete().where(user_sessions.c.session_id.in_(expired)))
        logger.info("Purged %d expired session(s)", len(expired))
        return len(expired)
