"""
auth/dependencies.py -- FastAPI Depends() helper that gates protected routes.

get_current_identity_id() reads "Authorization: Bearer <token>", verifies the
token with app.state.token_issuer and returns the subject (identity id). The
id is also attached to request.state.identity_id for downstream code.

The gate trusts the signature and expiry alone. It does not look the identity
up in the store -- a deleted or unverified identity with a live token still
passes; handlers that need the record load it themselves.

Failures:
  NoToken               401  header missing or not a Bearer credential
  InvalidOrExpiredToken 403  signature, format or expiry check failed
  MissingSigningSecret  500  SECRET_KEY not configured

Layer rule: no imports from lessons/ or notify/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import NoToken
from auth.tokens import TokenIssuer


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def get_current_identity_id(request: Request) -> str:
    """Require a valid bearer token. Returns the identity id it was issued to.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity_id: str = Depends(get_current_identity_id)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise NoToken()
    issuer: TokenIssuer = request.app.state.token_issuer
    claims = issuer.decode(token)
    request.state.identity_id = claims["sub"]
    return claims["sub"]
