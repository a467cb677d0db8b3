"""
api/routes/v1/setup.py -- First-run setup and operator status.

Routes:
  GET  /api/v1/setup/status  -- database and blob storage status, setup_required
  POST /api/v1/setup         -- create the first superadmin; 409 once any user exists

A database that could not be reached at startup is reported here rather than
retried; every other route answers 503 until the process is restarted with a
working DATABASE_URL (see the guard middleware in api/main.py).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from api.models import SetupRequest, SetupStatusResponse, UserResponse
from auth.models import ROLE_SUPERADMIN
from auth.store import UserStore
from cards.blob import HttpBlobStore
from core.errors import Conflict, DuplicateEmail

logger = logging.getLogger("profiledash.api.setup")

router = APIRouter()

# Driver messages can name hosts and accounts; the detail is logged at startup.
_DATABASE_ERROR_MESSAGE = "The database could not be opened. Check DATABASE_URL and the server log."


@router.get("/setup/status", response_model=SetupStatusResponse)
def setup_status(request: Request) -> SetupStatusResponse:
    state = request.app.state
    database_ok = getattr(state, "database_ok", False)
    blob_store = getattr(state, "blob_store", None)
    if blob_store is None or not blob_store.is_configured():
        blob_status = "unconfigured"
    elif isinstance(blob_store, HttpBlobStore):
        blob_status = "remote"
    else:
        blob_status = "local"
    setup_required = True
    if database_ok:
        setup_required = bool(getattr(state, "setup_required", False))
        if setup_required and state.user_store.has_users():
            state.setup_required = setup_required = False
    return SetupStatusResponse(
        database="connected" if database_ok else "failed",
        database_error=None if database_ok else _DATABASE_ERROR_MESSAGE,
        blob_storage=blob_status,
        setup_required=setup_required,
    )


@router.post("/setup", response_model=UserResponse, status_code=201)
def setup(request: Request, body: SetupRequest) -> UserResponse:
    """Create the first superadmin account.

    Re-checks has_users() at the database level even though setup_required
    is already False after the first success: two concurrent requests can
    both see the flag set. The unique email index settles the same-email
    race; a different-email race can still leave two superadmins, which is
    harmless.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.has_users():
        # The first account came from the CLI or another worker.
        request.app.state.setup_required = False
        raise Conflict("Setup already complete.")
    try:
        created = user_store.create_user(body.name, body.email, body.password, ROLE_SUPERADMIN)
    except DuplicateEmail as exc:
        request.app.state.setup_required = False
        raise Conflict("Setup already complete.") from exc
    request.app.state.setup_required = False
    logger.info("Setup complete: superadmin user_id=%s created", created.id)
    return UserResponse.from_user(created)
