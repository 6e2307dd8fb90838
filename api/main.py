"""
api/main.py -- FastAPI application entry point for the OTP authentication service.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every collaborator from one Settings object and wires them
into app.state:
  identity_store, lesson_store  -- SQLAlchemy stores (same DATABASE_URL)
  token_issuer                  -- TokenIssuer(SECRET_KEY, TOKEN_EXPIRE_SECONDS)
  auth_service                  -- AuthService(store, hasher, engine, issuer, mailer)
Shutdown disposes the stores symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.lessons import router as lessons_router
from auth.errors import AuthServiceError, TransientInternal
from auth.otp import ChallengeEngine
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from lessons.store import LessonStore
from notify.mailer import MailDispatcher

_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("otpauth.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store, hasher, challenge engine, token issuer and mailer.

    Configuration is read once here and passed down explicitly; nothing below
    this function calls get_settings().
    """
    settings = get_settings()
    logger.info("OTP auth API starting up")

    identity_store = IdentityStore(settings.database_url)
    app.state.identity_store = identity_store
    app.state.lesson_store = LessonStore(settings.database_url)
    logger.info("Stores initialized")

    app.state.token_issuer = TokenIssuer(settings.secret_key, settings.token_expire_seconds)
    if not settings.secret_key:
        logger.error("SECRET_KEY is not set -- token issuance and verification will fail")

    mailer = MailDispatcher(settings)
    if not mailer.configured:
        logger.warning("SMTP not configured -- verification codes will be logged, not mailed")

    app.state.auth_service = AuthService(
        store=identity_store,
        hasher=PasswordHasher(settings.bcrypt_rounds),
        challenges=ChallengeEngine(
            identity_store,
            ttl_seconds=settings.otp_ttl_seconds,
            code_length=settings.otp_length,
        ),
        tokens=app.state.token_issuer,
        notifier=mailer,
    )
    logger.info("Auth service initialized")

    yield

    app.state.identity_store.close()
    app.state.lesson_store.close()
    logger.info("OTP auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="OTP Auth API",
    description="Email/password authentication with a mandatory one-time-code step, plus a lesson catalogue.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(lessons_router, prefix="/api/v1", tags=["Lessons"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Render auth core failures with their own status and code.

    Internal failures (hashing, signing secret) keep their code for operators
    but the message is replaced by a generic one and the traceback is logged.
    """
    message = exc.message
    if isinstance(exc, TransientInternal):
        logger.error("Internal auth failure on %s %s: %s", request.method, request.url.path, exc.code, exc_info=exc)
        message = "An unexpected error occurred."
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(exclude_none=True),
    )
    response.headers["Cache-Control"] = "no-store"
    return response


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
    """Return 400 with structured error when the request body has the wrong shape or types."""
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


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
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
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    db_ok = request.app.state.identity_store.ping()
    return HealthResponse(
        version=_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
