"""
auth/passwords.py -- One-way adaptive password hashing (bcrypt).

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection trips over bcrypt 4.x, and direct usage needs no compatibility shim.

bcrypt only reads the first 72 bytes of a secret. Newer bcrypt releases raise
on longer inputs instead of truncating, so both hash() and verify() truncate
explicitly and behave the same on every release.

Timing equalization: verify_dummy() runs a full bcrypt check against a hash
computed once at construction. The login path calls it when the email is
unknown, so response time does not reveal whether an account exists.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import HashingFailure

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """bcrypt hashing with a configurable cost factor.

    Every hash() call draws a fresh salt, so hashing the same password twice
    yields two different strings that both verify.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("otpauth_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        try:
            return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except ValueError as exc:
            raise HashingFailure("Password hashing failed.") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        checkpw compares in constant time. A stored value that is not a valid
        bcrypt hash is a data problem, not a wrong password: HashingFailure.
        """
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError as exc:
            raise HashingFailure("Password verification failed.") from exc

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt verification without a real account behind it."""
        self.verify(plain, self._dummy_hash)
