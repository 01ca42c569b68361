"""
api/main.py -- FastAPI application entry point for the Acquisitions API.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request, 500s included
  4. security_headers      -- nosniff / frame / referrer headers on every response

The catch-all 500 is rendered by Starlette's ServerErrorMiddleware, which sits
outside all of the above, so that one response carries no security headers.

Lifespan builds the request-independent collaborators once and parks them on
app.state: UserStore (connection pool), TokenService (signing secret) and
AuthService. Handlers and dependencies read them from there.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse, MessageResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from api.validation import format_validation_errors
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import AppError

VERSION = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("acquisitions.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared collaborators on startup and release them on shutdown.

    The signing secret is handed to TokenService here, explicitly. Nothing
    else in the process holds it.
    """
    logger.info("Acquisitions API starting up (env=%s)", settings.app_env)
    app.state.started_at = time.monotonic()
    app.state.user_store = UserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expire_seconds=settings.token_expire_seconds,
    )
    app.state.auth_service = AuthService(app.state.user_store, bcrypt_rounds=settings.bcrypt_rounds)
    logger.info("User store initialized")

    yield

    app.state.user_store.close()
    logger.info("Acquisitions API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Acquisitions API",
    description="User sign-up, sign-in and account management with JWT cookie sessions.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Every registration wraps the app built so far, so the last one registered
# is outermost. Register innermost first: security_headers, log_requests,
# CORS, then TrustedHost.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    client = request.client.host if request.client else "unknown"
    try:
        response = await call_next(request)
    except Exception:
        # The catch-all handler renders the 500 outside this middleware.
        ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %d %.1fms %s", request.method, request.url.path, 500, ms, client)
        raise
    ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d %.1fms %s", request.method, request.url.path, response.status_code, ms, client)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_host_list or ["*"],
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Client errors share the flat {error, message?, details?} envelope.
# ---------------------------------------------------------------------------


def _internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal Server Error",
            message="An unexpected error occurred.",
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error through the ErrorKind -> status table.

    Unclassified kinds (data access, token signing) are logged with their
    traceback and answered with the generic 500 body.
    """
    status_code = exc.status_code
    if status_code is None:
        logger.error(
            "Unhandled %s on %s %s: %s",
            exc.kind.value,
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return _internal_error()

    logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.kind.value)
    return JSONResponse(status_code=status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field errors when FastAPI rejects the request (e.g. malformed JSON)."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="Validation failed",
            details=format_validation_errors(exc.errors()),
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a flat {error} body for routing errors (404, 405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _internal_error()


# ---------------------------------------------------------------------------
# Service endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "Hello from Acquisitions API"


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, process uptime, and database reachability."""
    store: UserStore = request.app.state.user_store
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        database="ok" if store.ping() else "error",
    )


@app.get("/api", tags=["Health"])
async def api_status() -> MessageResponse:
    return MessageResponse(message="Acquisitions API is Running")
