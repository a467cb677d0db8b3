"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Session cookie ("session-id") -- set by POST /api/v1/auth/login.
  2. Authorization: Bearer <token> header -- scripts and API clients that
     log in once and replay the same session token.

Both are the same opaque session token. Every decision is delegated to
auth.guard, so routes and stores share one definition of who may do what.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() raises Unauthenticated (401).
require_admin() additionally raises Forbidden (403) unless admin/superadmin.

The errors are core.errors types; api/main.py maps them to HTTP responses.

Layer rule: no imports from api/ or cards/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth import guard
from auth.models import User
from auth.sessions import SessionManager
from auth.tokens import SESSION_COOKIE_NAME
from core.errors import Unauthenticated


def _candidate_tokens(request: Request) -> list[str]:
    tokens: list[str] = []
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if cookie:
        tokens.append(cookie)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        tokens.append(auth_header[7:])
    return tokens


def get_session_token(request: Request) -> str | None:
    """Return the first token presented by the request (cookie before header)."""
    tokens = _candidate_tokens(request)
    return tokens[0] if tokens else None


def _authorize(request: Request, check: Callable[[SessionManager, str | None], User]) -> User:
    """Run a guard check per presented token. A stale cookie does not hide a valid Bearer header."""
    sessions: SessionManager = request.app.state.sessions
    tokens = _candidate_tokens(request)
    for token in tokens[:-1]:
        try:
            return check(sessions, token)
        except Unauthenticated:
            continue
    return check(sessions, tokens[-1] if tokens else None)


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request's session to a User, or None. Never raises."""
    try:
        return _authorize(request, guard.require_user)
    except Unauthenticated:
        return None


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/cards")
        def route(user: User = Depends(get_current_user)): ...
    """
    return _authorize(request, guard.require_user)


def require_admin(request: Request) -> User:
    """Require admin or superadmin role (401 if unauthenticated, 403 otherwise)."""
    return _authorize(request, guard.require_admin)
