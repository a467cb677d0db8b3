"""
api/main.py -- FastAPI application entry point for ProfileDash.

Run with:  uvicorn asgi:app --reload

Middleware, in registration order:
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. availability_guard    -- 503 while the database is down or setup is pending
  5. log_requests          -- one line per request with status and latency

Lifespan builds the Database handle and injects it into every store, then
starts the session purge task. Shutdown cancels the task and disposes the
engine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.cards import router as cards_router
from api.routes.v1.setup import router as setup_router
from api.routes.v1.upload import router as upload_router
from api.routes.v1.users import router as users_router
from auth.dependencies import get_current_user
from auth.models import User
from auth.sessions import SessionManager
from auth.store import UserStore
from cards.blob import build_blob_store
from cards.store import CardStore
from core.config import get_settings
from core.database import Database
from core.errors import ProfileDashError

APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("profiledash.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session rows every 6 hours.

    Expired sessions already fail to resolve; this only keeps the table small.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(6 * 60 * 60)
        removed = await asyncio.to_thread(app.state.sessions.purge_expired)
        logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the database handle and stores; tear them down on shutdown.

    A database that cannot be opened is not retried. The failure is recorded
    on app.state so GET /api/v1/setup/status can show it, and every other API
    route answers 503 until the process is restarted.
    """
    logger.info("ProfileDash API starting up")
    app.state.blob_store = build_blob_store(settings)
    app.state.purge_task = None
    try:
        db = Database(settings.database_url)
    except (SQLAlchemyError, ImportError) as exc:
        logger.error("Database unavailable at startup: %s", exc)
        app.state.db = None
        app.state.database_ok = False
        app.state.setup_required = True
    else:
        app.state.db = db
        app.state.database_ok = True
        app.state.user_store = UserStore(db)
        app.state.sessions = SessionManager(db, duration_seconds=settings.session_duration_seconds)
        app.state.cards = CardStore(db)
        app.state.setup_required = not app.state.user_store.has_users()
        app.state.purge_task = asyncio.create_task(_purge_loop(app))
        logger.info("Database ready (setup_required=%s)", app.state.setup_required)

    yield

    if app.state.purge_task is not None:
        app.state.purge_task.cancel()
    if app.state.db is not None:
        app.state.db.close()
    logger.info("ProfileDash API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ProfileDash API",
    description="Role-based user accounts and profile cards with file attachments.",
    version=APP_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by auth-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Availability guard
#
# Only /api/ paths are guarded; locally stored uploads stay reachable.
# ---------------------------------------------------------------------------

_ALWAYS_OPEN = (f"{API_PREFIX}/health", f"{API_PREFIX}/setup/status")
_OPEN_DURING_SETUP = _ALWAYS_OPEN + (f"{API_PREFIX}/setup",)


def _unavailable(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


@app.middleware("http")
async def availability_guard(request: Request, call_next):
    """Answer 503 while the database is down or no account exists yet.

    setup_required is an in-memory flag set in lifespan and cleared by
    POST /api/v1/setup. While it is set, the database is asked again so an
    account created by the CLI or another worker reopens the API.
    """
    path = request.url.path
    if path.startswith("/api/"):
        state = request.app.state
        if not getattr(state, "database_ok", True) and path not in _ALWAYS_OPEN:
            return _unavailable(
                "database_unavailable",
                "The database could not be reached at startup. See /api/v1/setup/status.",
            )
        if getattr(state, "setup_required", False) and path not in _OPEN_DURING_SETUP:
            if await run_in_threadpool(state.user_store.has_users):
                state.setup_required = False
                logger.info("Setup completed outside this process; API reopened")
            else:
                return _unavailable("setup_required", "Create the first account with POST /api/v1/setup.")
    return await call_next(request)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix=API_PREFIX, tags=["Auth"])
app.include_router(users_router, prefix=API_PREFIX, tags=["Users"])
app.include_router(cards_router, prefix=API_PREFIX, tags=["Cards"])
app.include_router(upload_router, prefix=API_PREFIX, tags=["Upload"])
app.include_router(setup_router, prefix=API_PREFIX, tags=["Setup"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(user: User = Depends(get_current_user)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="ProfileDash API")


@app.get("/redoc", include_in_schema=False)
async def redoc(user: User = Depends(get_current_user)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="ProfileDash API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(ProfileDashError)
async def profiledash_error_handler(request: Request, exc: ProfileDashError) -> JSONResponse:
    """Map the domain error taxonomy (core/errors.py) to its HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=exc.code, message=exc.message, detail=exc.detail)
        ).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 validation_error when the body or query params fail validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured error for framework-raised HTTP errors (unknown route, 405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception is logged with its traceback; the client only sees a
    generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined here rather than in a router so it is reachable whatever the router
# state. Not rate limited.
# ---------------------------------------------------------------------------


@app.get(f"{API_PREFIX}/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    db = getattr(request.app.state, "db", None)
    database = "ok" if db is not None and db.check_connection() else "unavailable"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=APP_VERSION,
        components={"app": "ok", "database": database},
    )
