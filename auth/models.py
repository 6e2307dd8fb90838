"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
orchestrator do the work; these classes only own the domain shape.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChallengePurpose(str, Enum):
    """Why a challenge was issued. Decides what a successful consume unlocks."""

    register = "register"
    login = "login"
    verify = "verify"

    @property
    def marks_verified(self) -> bool:
        return self in (ChallengePurpose.register, ChallengePurpose.verify)


@dataclass
class Challenge:
    """A one-time code bound to one identity and one purpose.

    expires_at is timezone-aware UTC. Only the most recently issued challenge
    of an identity exists -- the store keeps a single slot per identity.
    """

    code: str
    expires_at: datetime
    purpose: ChallengePurpose


@dataclass
class Identity:
    """An account keyed by its normalized (trimmed, lowercased) email.

    password_hash is always a bcrypt hash, never the plaintext.
    id is None before the record is written to the database.
    """

    email: str
    password_hash: str
    id: str | None = None
    is_verified: bool = False
    challenge: Challenge | None = None
    completed_items: list[str] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass(frozen=True)
class ChallengeResult:
    """Outcome of a successful consume: the purpose that was active."""

    purpose: ChallengePurpose
