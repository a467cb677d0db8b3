"""
tests/test_sessions.py -- Unit tests for SessionManager.

Time is driven by the FakeClock fixture from conftest.py, so expiry is
tested without sleeping.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func, select

from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import hash_session_token
from core.database import Database, user_sessions


def _session_rows(db: Database, user_id: int) -> int:
    with db.connect() as conn:
        return conn.execute(
            select(func.count()).select_from(user_sessions).where(user_sessions.c.user_id == user_id)
        ).scalar()


class TestCreateAndResolve:
    def test_resolves_to_user(self, sessions: SessionManager, alice) -> None:
        token = sessions.create_session(alice)
        user = sessions.resolve_session(token)
        assert user is not None
        assert user.id == alice.id
        assert user.email == "alice@example.com"

    def test_token_is_not_stored_in_plain(self, db: Database, sessions: SessionManager, alice) -> None:
        token = sessions.create_session(alice)
        session = sessions.get_session(token)
        assert session.session_id == hash_session_token(token)
        assert session.session_id != token

    def test_unknown_and_empty_tokens(self, sessions: SessionManager) -> None:
        assert sessions.resolve_session("not-a-token") is None
        assert sessions.resolve_session("") is None

    def test_tokens_are_unique(self, sessions: SessionManager, alice, bob) -> None:
        assert sessions.create_session(alice) != sessions.create_session(bob)


class TestSingleSession:
    def test_new_login_revokes_previous(self, db: Database, sessions: SessionManager, alice) -> None:
        first = sessions.create_session(alice)
        second = sessions.create_session(alice)
        assert sessions.resolve_session(first) is None
        assert sessions.resolve_session(second).id == alice.id
        assert _session_rows(db, alice.id) == 1

    def test_other_users_are_unaffected(self, sessions: SessionManager, alice, bob) -> None:
        bob_token = sessions.create_session(bob)
        sessions.create_session(alice)
        sessions.create_session(alice)
        assert sessions.resolve_session(bob_token).id == bob.id


class TestExpiry:
    def test_valid_until_expiry(self, sessions: SessionManager, clock, alice) -> None:
        token = sessions.create_session(alice)
        clock.now += timedelta(seconds=3599)
        assert sessions.resolve_session(token) is not None

    def test_invalid_at_expiry(self, sessions: SessionManager, clock, alice) -> None:
        token = sessions.create_session(alice)
        clock.now += timedelta(seconds=3600)
        assert sessions.resolve_session(token) is None

    def test_resolve_does_not_extend(self, sessions: SessionManager, clock, alice) -> None:
        token = sessions.create_session(alice)
        expires = sessions.get_session(token).expires_at
        clock.now += timedelta(seconds=1800)
        sessions.resolve_session(token)
        assert sessions.get_session(token).expires_at == expires

    def test_get_session_still_returns_expired_row(self, sessions: SessionManager, clock, alice) -> None:
        token = sessions.create_session(alice)
        clock.now += timedelta(seconds=3600)
        assert sessions.resolve_session(token) is None
        assert sessions.get_session(token).user_id == alice.id

    def test_purge_removes_only_expired(self, db: Database, user_store: UserStore, clock, alice, bob) -> None:
        short = SessionManager(db, duration_seconds=60, clock=clock)
        long = SessionManager(db, duration_seconds=7200, clock=clock)
        short.create_session(alice)
        bob_token = long.create_session(bob)
        clock.now += timedelta(seconds=120)

        assert long.purge_expired() == 1
        assert _session_rows(db, alice.id) == 0
        assert long.resolve_session(bob_token).id == bob.id
        assert long.purge_expired() == 0


class TestRevoke:
    def test_revoke(self, sessions: SessionManager, alice) -> None:
        token = sessions.create_session(alice)
        sessions.revoke_session(token)
        assert sessions.resolve_session(token) is None

    def test_revoke_is_idempotent(self, sessions: SessionManager, alice) -> None:
        token = sessions.create_session(alice)
        sessions.revoke_session(token)
        sessions.revoke_session(token)
        sessions.revoke_session("")
        assert sessions.get_session(token) is None
