"""
api/main.py -- FastAPI application entry point for ClassHub.

Exposes the session authentication core over HTTP: login/logout/me plus the
role-gated collaborator endpoints. The page router is mounted by asgi.py.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency
  2. edge_guard            -- PathPolicy: path + cookie presence, no I/O
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the one Engine, both stores and the SessionManager, and
hands them to handlers through app.state. Nothing is a module-level global.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.edge import PathPolicy
from auth.errors import StoreError
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, create_store_engine
from auth.tokens import SESSION_COOKIE
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("classhub.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Delete expired session rows every `interval` seconds.

    Validation never depends on this sweep -- expired rows already fail
    validate_session(). The sweep only keeps the table small. A failing sweep
    is logged and retried on the next tick; nothing but cancellation ends it.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(app.state.session_manager.purge_expired)
        except StoreError:
            logger.warning("Session purge skipped; will retry in %ds", interval)
        except Exception:
            logger.exception("Session purge failed unexpectedly; will retry in %ds", interval)


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the data-tier objects once and tear them down symmetrically.

    Startup order matters:
      1. Engine and stores (schema created on first use).
      2. SessionManager wired to both stores with the configured key/TTL.
      3. Purge task last -- references app.state.session_manager.
    """
    logger.info("ClassHub API starting up")
    engine = create_store_engine(settings.database_url)
    user_store = UserStore(engine)
    session_store = SessionStore(engine)
    app.state.engine = engine
    app.state.session_manager = SessionManager(
        user_store,
        session_store,
        secret_key=settings.secret_key,
        ttl=timedelta(days=settings.session_ttl_days),
    )
    logger.info("Auth initialized (users_present=%s)", user_store.has_users())
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    engine.dispose()
    logger.info("ClassHub API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ClassHub API",
    description="Session authentication and role authorization for the ClassHub learning platform.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware both wrap the current stack, so the
# LAST registration is the OUTERMOST layer. Registered innermost first.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Edge guard
#
# First stage of the two-stage authorization pipeline. PathPolicy looks only
# at the path and whether a session cookie is present -- it cannot reach the
# stores, so it never decides validity or role. Handlers do that (RoleGuard).
# ---------------------------------------------------------------------------

_path_policy = PathPolicy()


@app.middleware("http")
async def edge_guard(request: Request, call_next):
    """Redirect anonymous page requests to /login; let everything else through."""
    has_token = bool(request.cookies.get(SESSION_COOKIE))
    decision = _path_policy.evaluate(request.url.path, has_token)
    if not decision.allow:
        return RedirectResponse(decision.location, status_code=302)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
# Web UI routers are mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is {"error": "<message>"} so clients parse one shape.
# Internal detail (SQL errors, tracebacks) is logged, never returned.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error_response(429, "Too many requests.", headers={"Retry-After": str(retry_after)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a client error: 400, no schema detail echoed."""
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return _error_response(400, "Invalid request body.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException detail (FastAPI's and Starlette's 404/405) as the flat error string."""
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Data tier failure: 500 with no hint about the caller's auth state.

    The store layer already logged the underlying exception with traceback.
    """
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(500, "Server error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "Server error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# Public and not rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
