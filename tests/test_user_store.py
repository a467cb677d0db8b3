"""
tests/test_user_store.py -- Unit tests for the credential store.

Coverage:
  - create_user: bcrypt hash stored, email normalised, validation, duplicates
  - authenticate_user: success, wrong password, unknown email, malformed hash
  - update_user: partial update, re-hash on password change, errors
  - delete_user: cascade to sessions and assigned cards, NotFound
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from auth.models import ROLE_ADMIN, ROLE_USER
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import authenticate_user, verify_password
from cards.models import Card, CardDetail, FileRecord
from cards.store import CardStore
from core.database import Database, card_details, cards, files, user_sessions, users
from core.errors import DuplicateEmail, NotFound, ValidationError


def _count(db: Database, table, *where) -> int:
    query = select(func.count()).select_from(table)
    for clause in where:
        query = query.where(clause)
    with db.connect() as conn:
        return conn.execute(query).scalar()


class TestCreateUser:
    def test_password_is_stored_as_bcrypt_hash(self, user_store: UserStore) -> None:
        user = user_store.create_user("Carol", "carol@example.com", "plain-secret", ROLE_USER)
        assert user.password_hash != "plain-secret"
        assert user.password_hash.startswith("$2")
        assert verify_password("plain-secret", user.password_hash)

    def test_email_is_normalised(self, user_store: UserStore) -> None:
        user = user_store.create_user("Carol", "  Carol@Example.COM ", "pw", ROLE_USER)
        assert user.email == "carol@example.com"
        assert user_store.find_by_email("CAROL@example.com").id == user.id

    def test_timestamps_are_set(self, user_store: UserStore) -> None:
        user = user_store.create_user("Carol", "carol@example.com", "pw", ROLE_USER)
        assert user.id is not None
        assert user.created_at
        assert user.created_at == user.updated_at

    def test_duplicate_email_rejected(self, user_store: UserStore) -> None:
        user_store.create_user("Carol", "carol@example.com", "pw", ROLE_USER)
        with pytest.raises(DuplicateEmail):
            user_store.create_user("Other Carol", "CAROL@example.com", "pw2", ROLE_USER)

    @pytest.mark.parametrize(
        "name,email,password,role",
        [
            ("", "x@example.com", "pw", ROLE_USER),
            ("X", "", "pw", ROLE_USER),
            ("X", "not-an-email", "pw", ROLE_USER),
            ("X", "x@example.com", "", ROLE_USER),
            ("X", "x@example.com", "pw", "owner"),
        ],
    )
    def test_invalid_input_rejected(self, user_store: UserStore, name, email, password, role) -> None:
        with pytest.raises(ValidationError):
            user_store.create_user(name, email, password, role)
        assert not user_store.has_users()

    def test_has_users(self, user_store: UserStore) -> None:
        assert user_store.has_users() is False
        user_store.create_user("Carol", "carol@example.com", "pw", ROLE_USER)
        assert user_store.has_users() is True

    def test_list_users_ordered_by_id(self, user_store: UserStore) -> None:
        first = user_store.create_user("Zed", "zed@example.com", "pw", ROLE_USER)
        second = user_store.create_user("Amy", "amy@example.com", "pw", ROLE_ADMIN)
        assert [u.id for u in user_store.list_users()] == [first.id, second.id]

    def test_password_limit_is_72_utf8_bytes(self, user_store: UserStore) -> None:
        user_store.create_user("Long", "long@example.com", "x" * 72, ROLE_USER)
        assert authenticate_user(user_store, "long@example.com", "x" * 72) is not None
        with pytest.raises(ValidationError):
            user_store.create_user("Longer", "longer@example.com", "x" * 100, ROLE_USER)
        # 40 characters, 80 bytes
        with pytest.raises(ValidationError):
            user_store.create_user("Accents", "accents@example.com", "\u00e9" * 40, ROLE_USER)
        assert [u.email for u in user_store.list_users()] == ["long@example.com"]


class TestAuthenticate:
    def test_valid_credentials(self, user_store: UserStore, alice) -> None:
        user = authenticate_user(user_store, "alice@example.com", "alicepass123")
        assert user is not None
        assert user.id == alice.id

    def test_email_lookup_is_case_insensitive(self, user_store: UserStore, alice) -> None:
        assert authenticate_user(user_store, "ALICE@example.com", "alicepass123") is not None

    def test_wrong_password(self, user_store: UserStore, alice) -> None:
        assert authenticate_user(user_store, "alice@example.com", "nope") is None

    def test_unknown_email(self, user_store: UserStore) -> None:
        assert authenticate_user(user_store, "ghost@example.com", "whatever") is None

    def test_malformed_stored_credential_never_matches(self, user_store: UserStore) -> None:
        assert user_store.verify_credential("secret", "secret") is False
        assert user_store.verify_credential("secret", "") is False


class TestUpdateUser:
    def test_partial_update_keeps_other_fields(self, user_store: UserStore, alice) -> None:
        updated = user_store.update_user(alice.id, name="Alice Liddell")
        assert updated.name == "Alice Liddell"
        assert updated.email == alice.email
        assert updated.role == alice.role
        assert updated.password_hash == alice.password_hash

    def test_password_change_is_rehashed(self, user_store: UserStore, alice) -> None:
        updated = user_store.update_user(alice.id, password="new-password")
        assert updated.password_hash != "new-password"
        assert authenticate_user(user_store, "alice@example.com", "new-password") is not None
        assert authenticate_user(user_store, "alice@example.com", "alicepass123") is None

    def test_role_change(self, user_store: UserStore, alice) -> None:
        assert user_store.update_user(alice.id, role=ROLE_ADMIN).role == ROLE_ADMIN

    def test_email_collision(self, user_store: UserStore, alice, bob) -> None:
        with pytest.raises(DuplicateEmail):
            user_store.update_user(bob.id, email="alice@example.com")

    def test_same_email_on_same_user_is_allowed(self, user_store: UserStore, alice) -> None:
        assert user_store.update_user(alice.id, email="Alice@Example.com").email == "alice@example.com"

    def test_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(NotFound):
            user_store.update_user(999, name="Nobody")

    def test_no_fields(self, user_store: UserStore, alice) -> None:
        with pytest.raises(ValidationError):
            user_store.update_user(alice.id)

    def test_unknown_role(self, user_store: UserStore, alice) -> None:
        with pytest.raises(ValidationError):
            user_store.update_user(alice.id, role="root")

    def test_overlong_password_rejected(self, user_store: UserStore, alice) -> None:
        with pytest.raises(ValidationError):
            user_store.update_user(alice.id, password="x" * 73)
        assert user_store.find_by_id(alice.id).password_hash == alice.password_hash


class TestDeleteUser:
    def test_cascade_removes_sessions_and_assigned_cards(
        self,
        db: Database,
        user_store: UserStore,
        sessions: SessionManager,
        card_store: CardStore,
        admin,
        alice,
        bob,
    ) -> None:
        token = sessions.create_session(alice)
        card = card_store.create_card(
            Card(title="Alice card", type="Profile", assigned_user_id=alice.id),
            admin,
            details=[CardDetail(field_name="Site", field_value="https://alice.example.com")],
        )
        card_store.attach_file(card.id, "cv.pdf", "/files/x/cv.pdf", alice)
        bob_card = card_store.create_card(Card(title="Bob card", type="Profile", assigned_user_id=bob.id), admin)

        user_store.delete_user(alice.id)

        assert user_store.find_by_id(alice.id) is None
        assert sessions.resolve_session(token) is None
        assert _count(db, user_sessions, user_sessions.c.user_id == alice.id) == 0
        assert _count(db, cards, cards.c.assigned_user_id == alice.id) == 0
        assert _count(db, card_details, card_details.c.card_id == card.id) == 0
        assert _count(db, files, files.c.card_id == card.id) == 0
        assert card_store.get_card(bob_card.id, admin).title == "Bob card"

    def test_cards_created_by_deleted_admin_survive(
        self, user_store: UserStore, card_store: CardStore, admin, alice
    ) -> None:
        other_admin = user_store.create_user("Other", "other@example.com", "pw", ROLE_ADMIN)
        card = card_store.create_card(Card(title="Kept", type="Profile", assigned_user_id=alice.id), other_admin)
        card_store.update_card(
            card.id,
            other_admin,
            files=[FileRecord(file_name="a.txt", file_url="/files/a.txt")],
        )

        user_store.delete_user(other_admin.id)

        kept = card_store.get_card(card.id, admin)
        assert kept.created_by is None
        assert kept.files[0].uploaded_by is None

    def test_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(NotFound):
            user_store.delete_user(12345)

    def test_row_count(self, db: Database, user_store: UserStore, alice, bob) -> None:
        user_store.delete_user(alice.id)
        assert _count(db, users) == 1
