"""
auth/tokens.py -- Bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (identity id), email, iat,
       exp and a random jti. The jti makes every token unique even when two
       are issued for the same identity within the same second.

  Stateless: there is no revocation list and no server-side session. A token
       stays valid for its whole lifetime, including after a password change.

  Failures collapse: bad signature, malformed token, expired token and a
       missing subject are all reported as InvalidOrExpiredToken. Clients are
       never told which check failed.

  SECRET_KEY: passed in by the caller (see core/config.py). An empty key makes
       both issue() and decode() raise MissingSigningSecret -- the issuer never
       falls back to a default key.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InvalidOrExpiredToken, MissingSigningSecret
from auth.models import Identity

logger = logging.getLogger("otpauth.auth.tokens")

_ALGORITHM = "HS256"


class TokenIssuer:
    """Signs and verifies short-lived bearer tokens.

    Args:
        secret_key:     HMAC signing key. Empty string = not configured.
        expire_seconds: Token lifetime (default 1 hour).
    """

    def __init__(self, secret_key: str, expire_seconds: int = 3600) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def require_configured(self) -> str:
        """Return the signing key, or raise MissingSigningSecret if none is set."""
        if not self._secret_key:
            logger.error("Token operation refused: SECRET_KEY is not configured")
            raise MissingSigningSecret()
        return self._secret_key

    def issue(self, identity: Identity) -> str:
        """Encode a signed JWT for the identity, expiring expire_seconds from now."""
        secret = self.require_configured()
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": identity.id,
            "email": identity.email,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def decode(self, token: str) -> dict:
        """Verify a JWT and return its claims.

        Raises InvalidOrExpiredToken on any verification failure.
        """
        secret = self.require_configured()
        try:
            claims = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.info("Token verification failed: %s", exc)
            raise InvalidOrExpiredToken() from exc
        if not claims.get("sub"):
            raise InvalidOrExpiredToken()
        return claims
