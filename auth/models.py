"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in cards/models.py -- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/ or cards/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"

ROLES: frozenset[str] = frozenset({ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN})
ADMIN_ROLES: frozenset[str] = frozenset({ROLE_ADMIN, ROLE_SUPERADMIN})


@dataclass
class User:
    """A ProfileDash account.

    password_hash is a bcrypt hash. It never leaves the auth layer: API
    response models are built field by field and do not include it.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    role: str  # "user" | "admin" | "superadmin"
    password_hash: str = ""
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """A persisted login session.

    session_id is the HMAC of the raw token handed to the browser; the raw
    token itself is never stored.
    """

    session_id: str
    user_id: int
    expires_at: str  # ISO 8601 UTC
    created_at: str | None = None
