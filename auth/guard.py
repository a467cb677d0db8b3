"""
auth/guard.py -- Access control decisions.

Pure decision logic: the only I/O is the session lookup done through the
SessionManager handed to require_user()/require_admin(). Stores call these
before touching the database so a denied request performs no writes.

Card arguments are duck-typed (anything with assigned_user_id) so this module
does not import from cards/.

Layer rule: no imports from api/ or cards/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from auth.models import ADMIN_ROLES, ROLE_SUPERADMIN, User
from core.errors import Forbidden, Unauthenticated

if TYPE_CHECKING:
    from auth.sessions import SessionManager


def is_admin(user: User) -> bool:
    return user.role in ADMIN_ROLES


def require_user(sessions: SessionManager, token: str | None) -> User:
    """Resolve token to a user or raise Unauthenticated."""
    user = sessions.resolve_session(token) if token else None
    if user is None:
        raise Unauthenticated()
    return user


def require_admin(sessions: SessionManager, token: str | None) -> User:
    """require_user(), then Forbidden unless the user is an admin or superadmin."""
    user = require_user(sessions, token)
    if not is_admin(user):
        raise Forbidden("Admin access required.")
    return user


def can_read_card(user: User, card: Any) -> bool:
    return is_admin(user) or card.assigned_user_id == user.id


def can_write_card(user: User, card: Any = None) -> bool:
    """Card metadata is admin-only; owners can only attach files (see can_attach_file)."""
    return is_admin(user)


def can_attach_file(user: User, card: Any) -> bool:
    return is_admin(user) or card.assigned_user_id == user.id


def can_delete_user(user: User) -> bool:
    return user.role == ROLE_SUPERADMIN


def can_assign_role(actor: User, role: str, target: User | None = None) -> bool:
    """Whether actor may create or update an account with the given role.

    Admins manage user and admin accounts; granting the superadmin role, or
    changing an existing superadmin account, is reserved to superadmins.
    """
    if not is_admin(actor):
        return False
    if actor.role == ROLE_SUPERADMIN:
        return True
    if role == ROLE_SUPERADMIN:
        return False
    return target is None or target.role != ROLE_SUPERADMIN
