"""
auth/service.py -- Register / login / verify-otp / change-password use cases.

AuthService composes the identity store, password hasher, challenge engine,
token issuer and a notifier (anything with send(destination, subject, body)).
It raises the exceptions in auth/errors.py and never touches HTTP concerns;
the API layer maps those exceptions to responses.

Protocol:
  register     -> challenge(register) mailed, no token
  login        -> password check -> challenge(verify | login) mailed, no token
  verify_otp   -> consume challenge -> token          (the only token path)
  change_password (identity id from a verified token)

Input shape is validated before any store access. Login failures collapse to
InvalidCredentials whether the email is unknown or the password is wrong, and
bcrypt runs in both branches [C1].

Dispatch is fire-and-forget: a notifier failure is logged and neither fails
the request nor rolls back the persisted challenge.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    EmailAlreadyRegistered,
    IdentityNotFound,
    IncorrectCurrentPassword,
    InvalidCredentials,
    InvalidEmailFormat,
    MissingFields,
    PasswordUnchanged,
    UnknownChallenge,
    Unauthorized,
    WeakPassword,
)
from auth.models import ChallengePurpose, Identity
from auth.otp import ChallengeEngine
from auth.passwords import PasswordHasher
from auth.store import IdentityStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("otpauth.auth")

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class LoginOutcome(str, Enum):
    challenge_sent = "challenge_sent"
    must_verify = "must_verify"


@dataclass(frozen=True)
class VerifyResult:
    token: str
    identity: Identity
    purpose: ChallengePurpose


def _require(*values: Any) -> None:
    """Raise MissingFields unless every value is a non-empty string."""
    for value in values:
        if not isinstance(value, str) or not value:
            raise MissingFields()


def _check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword()


class AuthService:
    """The authentication orchestrator."""

    def __init__(
        self,
        store: IdentityStore,
        hasher: PasswordHasher,
        challenges: ChallengeEngine,
        tokens: TokenIssuer,
        notifier: Any,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.challenges = challenges
        self.tokens = tokens
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> Identity:
        """Create or refresh a pending identity and mail a register challenge.

        An existing unverified identity is treated as a retry: its password
        hash is replaced and a new challenge overwrites the old one.
        """
        _require(email, password)
        email = normalize_email(email)
        if not _EMAIL_RE.match(email):
            raise InvalidEmailFormat()
        _check_password_strength(password)

        identity = self.store.get_by_email(email)
        if identity is not None and identity.is_verified:
            raise EmailAlreadyRegistered()

        password_hash = self.hasher.hash(password)
        if identity is None:
            identity = Identity(email=email, password_hash=password_hash)
            try:
                self.store.create_identity(identity)
            except IntegrityError as exc:
                # A concurrent registration for the same email won the insert.
                raise EmailAlreadyRegistered() from exc
            logger.info("Registered pending identity %s", identity.id)
        else:
            identity.password_hash = password_hash
            identity.is_verified = False
            self.store.save_identity(identity)
            logger.info("Registration retry for pending identity %s", identity.id)

        self._send_challenge(identity, ChallengePurpose.register)
        return identity

    def login(self, email: str, password: str) -> LoginOutcome:
        """Check the password and mail a challenge. Never returns a token."""
        _require(email, password)
        identity = self.store.get_by_email(normalize_email(email))
        if identity is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            raise InvalidCredentials()
        if not self.hasher.verify(password, identity.password_hash):
            logger.info("Password mismatch for identity %s", identity.id)
            raise InvalidCredentials()

        if not identity.is_verified:
            self._send_challenge(identity, ChallengePurpose.verify)
            return LoginOutcome.must_verify

        self._send_challenge(identity, ChallengePurpose.login)
        return LoginOutcome.challenge_sent

    def verify_otp(self, email: str, code: str) -> VerifyResult:
        """Consume the pending challenge and issue a bearer token."""
        _require(email, code)
        identity = self.store.get_by_email(normalize_email(email))
        if identity is None or identity.challenge is None:
            raise UnknownChallenge()

        # Refuse before the code is spent or the identity changes.
        self.tokens.require_configured()
        result = self.challenges.consume(identity, code)
        if result.purpose.marks_verified and not identity.is_verified:
            identity.is_verified = True
            self.store.save_identity(identity)
            logger.info("Identity %s verified", identity.id)

        token = self.tokens.issue(identity)
        logger.info("Token issued for identity %s (%s)", identity.id, result.purpose.value)
        return VerifyResult(token=token, identity=identity, purpose=result.purpose)

    def change_password(self, identity_id: str | None, current_password: str, new_password: str) -> None:
        """Replace the password hash. Outstanding tokens stay valid."""
        if not identity_id:
            raise Unauthorized()
        _require(current_password, new_password)
        _check_password_strength(new_password)
        if new_password == current_password:
            raise PasswordUnchanged()

        identity = self.store.get_by_id(identity_id)
        if identity is None:
            raise IdentityNotFound()
        if not self.hasher.verify(current_password, identity.password_hash):
            raise IncorrectCurrentPassword()

        identity.password_hash = self.hasher.hash(new_password)
        self.store.save_identity(identity)
        logger.info("Password changed for identity %s", identity.id)

    def get_profile(self, identity_id: str | None) -> Identity:
        if not identity_id:
            raise Unauthorized()
        identity = self.store.get_by_id(identity_id)
        if identity is None:
            raise IdentityNotFound()
        return identity

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send_challenge(self, identity: Identity, purpose: ChallengePurpose) -> None:
        code = self.challenges.issue(identity, purpose)
        ttl_minutes = int(self.challenges.ttl.total_seconds() // 60)
        subject = f"Your verification code ({purpose.value})"
        body = f"Your verification code is: {code}\nIt expires in {ttl_minutes} minutes."
        try:
            self.notifier.send(identity.email, subject, body)
        except Exception:
            logger.exception("Challenge dispatch failed for identity %s", identity.id)
