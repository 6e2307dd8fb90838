"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create/refresh pending identity; mails a code (201)
  POST /api/v1/auth/login            -- password check; mails a code (200, or 403 if unverified)
  POST /api/v1/auth/verify-otp       -- consume code; returns a bearer token (200)
  POST /api/v1/auth/change-password  -- requires bearer token
  GET  /api/v1/profile               -- requires bearer token

Handlers are plain `def`: FastAPI runs them in its threadpool, so bcrypt,
store I/O and SMTP never block the event loop.

Failures are raised by AuthService as auth.errors exceptions and rendered by
the AuthServiceError handler in api/main.py.

Security:
  [H2] register / login / verify-otp are rate-limited per IP (AUTH_RATE_LIMIT).
  [C1] AuthService.login() equalizes timing between unknown email and wrong
       password -- never inline store lookups + verify here.
  [M5] Cache-Control: no-store on every response carrying auth state.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ChangePasswordRequest,
    CredentialsRequest,
    MessageResponse,
    ProfileResponse,
    TokenResponse,
    VerifyOtpRequest,
)
from auth.dependencies import get_current_identity_id
from auth.service import AuthService, LoginOutcome
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register:         public
# - POST /api/v1/auth/login:            public
# - POST /api/v1/auth/verify-otp:       public
# - POST /api/v1/auth/change-password:  requires bearer token (get_current_identity_id)
# - GET  /api/v1/profile:               requires bearer token (get_current_identity_id)
router = APIRouter()


def _no_store(status_code: int, content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.auth_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Start (or restart) registration. The code is mailed; no token is returned."""
    service: AuthService = request.app.state.auth_service
    service.register(body.email, body.password)
    return _no_store(
        201,
        MessageResponse(message="Verification code sent. Verify it to complete registration.").model_dump(
            exclude_none=True
        ),
    )


@limiter.limit(_settings.auth_rate_limit)  # [H2]
@router.post("/auth/login", response_model=MessageResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Check the password and mail a login code.

    An unverified identity gets a fresh verify code and a 403 so the client
    can show the verification step instead of a generic failure.
    """
    service: AuthService = request.app.state.auth_service
    outcome = service.login(body.email, body.password)
    if outcome is LoginOutcome.must_verify:
        return _no_store(
            403,
            MessageResponse(
                message="Email not verified. A new verification code has been sent.",
                code="email_not_verified",
            ).model_dump(),
        )
    return _no_store(
        200,
        MessageResponse(message="Login code sent. Verify it to continue.", code="challenge_sent").model_dump(),
    )


@limiter.limit(_settings.auth_rate_limit)  # [H2]
@router.post("/auth/verify-otp", response_model=TokenResponse)
def verify_otp(request: Request, body: VerifyOtpRequest) -> JSONResponse:
    """Consume the pending code and return a bearer token."""
    service: AuthService = request.app.state.auth_service
    result = service.verify_otp(body.email, body.otp)
    return _no_store(
        200,
        TokenResponse(
            message="Verification successful.",
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=service.tokens.expire_seconds,
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.auth_rate_limit)
@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity_id: str = Depends(get_current_identity_id),
) -> JSONResponse:
    """Replace the caller's password. Existing tokens are not revoked."""
    service: AuthService = request.app.state.auth_service
    service.change_password(identity_id, body.current_password, body.new_password)
    return _no_store(200, MessageResponse(message="Password updated.").model_dump(exclude_none=True))


@router.get("/profile", response_model=ProfileResponse)
def profile(request: Request, identity_id: str = Depends(get_current_identity_id)) -> ProfileResponse:
    """Return id and email of the authenticated identity."""
    service: AuthService = request.app.state.auth_service
    identity = service.get_profile(identity_id)
    return ProfileResponse(id=identity.id, email=identity.email)
