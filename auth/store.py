"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts (the credential store).

Pattern: Repository + Data Mapper. UserStore is the repository; row_to_user
is the mapper. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Passwords are hashed with bcrypt before they reach this module's INSERT and
  UPDATE statements; the raw password is never persisted.

  Email uniqueness is checked up front for a clean error and enforced again by
  the UNIQUE index -- an IntegrityError from a concurrent insert is mapped to
  the same DuplicateEmail error.

Deletion cascade:
  delete_user() removes, in one transaction and in this order: the user's
  sessions, details and files of cards assigned to the user, those cards, and
  finally the user row. Cards and files the user merely created or uploaded
  for someone else survive with created_by / uploaded_by cleared.

Layer rule: no imports from api/ or cards/.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from auth.models import ROLES, User
from auth.tokens import MAX_PASSWORD_BYTES, hash_password, verify_password
from core.database import Database, card_details, cards, files, now_iso, user_sessions, users
from core.errors import DuplicateEmail, NotFound, ValidationError

logger = logging.getLogger("profiledash.auth.store")


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively and without surrounding whitespace."""
    return email.strip().lower()


def _validate_role(role: str) -> str:
    if role not in ROLES:
        raise ValidationError(f"Unknown role {role!r}. Expected one of: {', '.join(sorted(ROLES))}.")
    return role


def _validate_email(email: str) -> str:
    normalized = normalize_email(email)
    if not normalized or "@" not in normalized:
        raise ValidationError("A valid email address is required.")
    return normalized


def _validate_password(password: str) -> str:
    if not password:
        raise ValidationError("Password is required.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
    return password


class UserStore:
    """Repository for User accounts.

    Usage:
        store = UserStore(db)
        user = store.create_user("Alice", "a@x.com", "p1", "user")
        store.find_by_email("a@x.com")
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one account exists (first-run detection)."""
        with self._db.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users)).scalar()
        return (result or 0) > 0

    def find_by_email(self, email: str) -> User | None:
        with self._db.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == normalize_email(email))).fetchone()
        return row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        with self._db.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all accounts ordered by id. Admin-only operation."""
        with self._db.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.id)).fetchall()
        return [row_to_user(r) for r in rows]

    def verify_credential(self, plain_password: str, stored_credential: str) -> bool:
        return verify_password(plain_password, stored_credential)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, name: str, email: str, password: str, role: str) -> User:
        """Insert a new account and return it.

        Raises ValidationError for blank fields or an unknown role, and
        DuplicateEmail if the email is already registered.
        """
        if not name or not name.strip():
            raise ValidationError("Name is required.")
        _validate_password(password)
        normalized = _validate_email(email)
        _validate_role(role)

        if self.find_by_email(normalized) is not None:
            raise DuplicateEmail()

        stamp = now_iso()
        try:
            with self._db.transaction() as conn:
                result = conn.execute(
                    users.insert().values(
                        name=name.strip(),
                        email=normalized,
                        password_hash=hash_password(password),
                        role=role,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateEmail() from exc

        logger.info("User created: id=%s role=%s", user_id, role)
        return self.find_by_id(user_id)

    def update_user(
        self,
        user_id: int,
        *,
        name: str | None = None,
        email: str | None = None,
        role: str | None = None,
        password: str | None = None,
    ) -> User:
        """Apply a partial update and return the refreshed account.

        Only the arguments that are not None are written. A new password is
        re-hashed; it is never stored as given.
        """
        values: dict = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Name cannot be blank.")
            values["name"] = name.strip()
        if email is not None:
            values["email"] = _validate_email(email)
        if role is not None:
            values["role"] = _validate_role(role)
        if password is not None:
            values["password_hash"] = hash_password(_validate_password(password))
        if not values:
            raise ValidationError("No fields to update.")

        if self.find_by_id(user_id) is None:
            raise NotFound("User not found.")
        if "email" in values:
            existing = self.find_by_email(values["email"])
            if existing is not None and existing.id != user_id:
                raise DuplicateEmail()

        values["updated_at"] = now_iso()
        try:
            with self._db.transaction() as conn:
                conn.execute(users.update().where(users.c.id == user_id).values(**values))
        except IntegrityError as exc:
            raise DuplicateEmail() from exc

        logger.info("User updated: id=%s fields=%s", user_id, sorted(k for k in values if k != "updated_at"))
        return self.find_by_id(user_id)

    def delete_user(self, user_id: int) -> None:
        """Delete an account and everything that depends on it, all-or-nothing.

        Raises NotFound if the account does not exist.
        """
        with self._db.transaction() as conn:
            found = conn.execute(select(users.c.id).where(users.c.id == user_id)).first()
            if found is None:
                raise NotFound("User not found.")

            assigned_cards = select(cards.c.id).where(cards.c.assigned_user_id == user_id)
            conn.execute(user_sessions.delete().where(user_sessions.c.user_id == user_id))
            conn.execute(card_details.delete().where(card_details.c.card_id.in_(assigned_cards)))
            conn.execute(files.delete().where(files.c.card_id.in_(assigned_cards)))
            conn.execute(cards.delete().where(cards.c.assigned_user_id == user_id))
            conn.execute(cards.update().where(cards.c.created_by == user_id).values(created_by=None))
            conn.execute(files.update().where(files.c.uploaded_by == user_id).values(uploaded_by=None))
            conn.execute(users.delete().where(users.c.id == user_id))

        logger.info("User deleted: id=%s", user_id)


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
