"""
api/routes/v1/auth.py -- Login, logout, and current-identity endpoints.

Routes:
  POST /api/v1/auth/login    -- email/password login; sets session cookie
  POST /api/v1/auth/logout   -- revokes the cookie's session; clears cookie
  GET  /api/v1/auth/me       -- current user (401 if not logged in)
  GET  /api/v1/auth/check    -- {authenticated, user}; never 401

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline
  find_by_email() + verify_credential().
  Wrong email and wrong password produce the same 401 body.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthCheckResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    UserResponse,
)
from auth.dependencies import get_current_user, get_session_token, try_get_current_user
from auth.models import User
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import authenticate_user, clear_session_cookie, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("profiledash.api.auth")

_settings = get_settings()

# Auth policy:
# - POST /auth/login:  public -- login endpoint must be unauthenticated
# - POST /auth/logout: public -- revoking an absent session is a no-op
# - GET  /auth/check:  public -- reports state instead of failing
# - GET  /auth/me:     requires auth (get_current_user)
router = APIRouter()


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; issue a session cookie.

    Creating the session revokes any earlier session of the same account.
    """
    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = request.app.state.sessions

    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Login failed from %s", request.client.host if request.client else "unknown")
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid email or password.")
            ).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = sessions.create_session(user)
    logger.info("Login succeeded for user_id=%s", user.id)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user=UserResponse.from_user(user)).model_dump(),
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke the presented session and clear the cookie."""
    sessions: SessionManager = request.app.state.sessions
    token = get_session_token(request)
    if token:
        sessions.revoke_session(token)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)


@router.get("/auth/check", response_model=AuthCheckResponse)
def check(request: Request) -> AuthCheckResponse:
    """Report whether the request carries a live session.

    Used by pages that render differently for signed-in visitors without
    treating "not signed in" as an error.
    """
    user = try_get_current_user(request)
    if user is None:
        return AuthCheckResponse(authenticated=False)
    return AuthCheckResponse(authenticated=True, user=UserResponse.from_user(user))
