"""
auth/otp.py -- Time-bound one-time code challenges.

Each identity has a single challenge slot. issue() draws a fresh numeric code,
stamps it with an expiry and overwrites whatever was there before; consume()
checks a presented code against the slot and clears it on success or expiry.

Per-identity state machine (every transition is persisted):

    Unverified --issue(register|verify)--> Pending
    Verified   --issue(login)-----------> Pending
    Pending    --consume ok-------------> cleared (caller marks verified / issues token)
    Pending    --consume mismatch-------> Pending (unchanged)
    Pending    --consume expired--------> cleared (code can never be retried)

Codes come from the secrets module: each digit is an independent uniform draw
over 0-9. Comparison is exact string equality -- codes are short-lived, so a
constant-time compare is not required.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from auth.errors import ChallengeExpired, ChallengeMismatch, NoActiveChallenge
from auth.models import Challenge, ChallengePurpose, ChallengeResult, Identity

if TYPE_CHECKING:
    from auth.store import IdentityStore

logger = logging.getLogger("otpauth.auth.otp")

_DIGITS = "0123456789"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = 6) -> str:
    """Return a numeric code of the given length (leading zeros allowed)."""
    return "".join(secrets.choice(_DIGITS) for _ in range(length))


class ChallengeEngine:
    """Issues and consumes challenges, persisting through IdentityStore.set_challenge().

    Args:
        store:       The identity repository.
        ttl_seconds: Lifetime of an issued code (default 10 minutes).
        code_length: Number of digits per code.
        clock:       Returns the current aware UTC time. Injectable for tests.
    """

    def __init__(
        self,
        store: IdentityStore,
        ttl_seconds: int = 600,
        code_length: int = 6,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.code_length = code_length
        self.clock = clock

    def issue(self, identity: Identity, purpose: ChallengePurpose) -> str:
        """Attach a new challenge to the identity and return its code.

        Any unconsumed code of this identity stops being valid.
        """
        code = generate_code(self.code_length)
        identity.challenge = Challenge(code=code, expires_at=self.clock() + self.ttl, purpose=purpose)
        self.store.set_challenge(identity.id, identity.challenge)
        logger.info("Issued %s challenge for identity %s", purpose.value, identity.id)
        return code

    def consume(self, identity: Identity, presented_code: str) -> ChallengeResult:
        """Validate presented_code against the identity's active challenge.

        Raises:
            NoActiveChallenge: nothing is pending, or a concurrent consume won.
            ChallengeExpired:  the code is past expires_at; the slot is cleared.
            ChallengeMismatch: the code differs; the slot is left untouched.
        """
        challenge = identity.challenge
        if challenge is None:
            raise NoActiveChallenge()

        if self.clock() > challenge.expires_at:
            identity.challenge = None
            self.store.clear_challenge_if(identity.id, challenge.code)
            logger.info("Expired %s challenge cleared for identity %s", challenge.purpose.value, identity.id)
            raise ChallengeExpired()

        if presented_code != challenge.code:
            raise ChallengeMismatch()

        identity.challenge = None
        # identity may be a stale snapshot; only the request that clears the row wins.
        if not self.store.clear_challenge_if(identity.id, challenge.code):
            logger.info("Challenge for identity %s was already consumed or replaced", identity.id)
            raise NoActiveChallenge()
        return ChallengeResult(purpose=challenge.purpose)
