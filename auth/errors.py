"""
auth/errors.py -- Error taxonomy for the authentication core.

Every failure the core can report is an AuthServiceError carrying a stable
machine-readable code, a user-facing message and the HTTP status the API layer
renders it with. The API layer maps them in a single exception handler, so the
orchestrator never imports fastapi.

Taxonomy (one base class per HTTP status family):
  ValidationFailure   400  malformed or missing input, bad OTP
  AuthFailure         401  bad credentials, missing token
  Forbidden           403  token present but invalid or expired
  NotFound            404  unknown identity or resource
  Conflict            409  email already registered and verified
  TransientInternal   500  hashing, signing or store failure

Messages of AuthFailure subclasses never say whether an email exists.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base error for the authentication service."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------


class ValidationFailure(AuthServiceError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class AuthFailure(AuthServiceError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class Forbidden(AuthServiceError):
    status_code = 403
    code = "forbidden"
    message = "Access denied."


class NotFound(AuthServiceError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class Conflict(AuthServiceError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists."


class TransientInternal(AuthServiceError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class MissingFields(ValidationFailure):
    code = "missing_fields"
    message = "Required fields are missing."


class InvalidEmailFormat(ValidationFailure):
    code = "invalid_email_format"
    message = "Invalid email format."


class WeakPassword(ValidationFailure):
    code = "weak_password"
    message = "Password must be at least 6 characters."


class PasswordUnchanged(ValidationFailure):
    code = "password_unchanged"
    message = "New password must be different from current password."


class UnknownChallenge(ValidationFailure):
    code = "unknown_challenge"
    message = "Invalid verification code."


class NoActiveChallenge(UnknownChallenge):
    """Raised by the challenge engine when the identity has no pending code."""


class ChallengeExpired(ValidationFailure):
    code = "otp_expired"
    message = "Verification code has expired. Please request a new one."


class ChallengeMismatch(ValidationFailure):
    code = "otp_mismatch"
    message = "Verification code is incorrect."


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class InvalidCredentials(AuthFailure):
    code = "invalid_credentials"
    message = "Invalid email or password."


class IncorrectCurrentPassword(AuthFailure):
    code = "incorrect_current_password"
    message = "Current password is incorrect."


class Unauthorized(AuthFailure):
    code = "unauthorized"
    message = "Unauthorized."


class NoToken(AuthFailure):
    code = "no_token"
    message = "No token provided."


class InvalidOrExpiredToken(Forbidden):
    code = "invalid_or_expired_token"
    message = "Invalid or expired token."


# ---------------------------------------------------------------------------
# Lookup / conflict
# ---------------------------------------------------------------------------


class IdentityNotFound(NotFound):
    code = "identity_not_found"
    message = "User not found."


class EmailAlreadyRegistered(Conflict):
    code = "email_already_registered"
    message = "Email already registered."


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------


class HashingFailure(TransientInternal):
    code = "hashing_failure"


class MissingSigningSecret(TransientInternal):
    code = "server_misconfiguration"
    message = "Token signing secret is not configured."
