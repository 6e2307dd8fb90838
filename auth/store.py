"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper.
IdentityStore is the repository; _row_to_identity is the mapper.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  UNIQUE(email) is enforced by the database. create_identity() lets the
  IntegrityError escape so the caller can turn a registration race into a
  conflict response.

Challenge slot:
  The active challenge lives in three nullable columns of the identity row
  (otp_code, otp_expires_at, otp_purpose). set_challenge() replaces all three
  with one UPDATE, which is atomic per row -- concurrent issuers race and the
  last write wins. No in-process locking.

Layer rule: no imports from api/, lessons/, or notify/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Challenge, ChallengePurpose, Identity

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("otp_code", String(10)),
    Column("otp_expires_at", String(32)),  # ISO 8601 UTC
    Column("otp_purpose", String(10)),  # "register" | "login" | "verify"
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_completed_items = Table(
    "identity_completed_items",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identity_id", String(32), nullable=False),
    Column("item_id", String(64), nullable=False),
    Column("completed_at", String(32), nullable=False),
    UniqueConstraint("identity_id", "item_id", name="uq_identity_item"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _challenge_columns(challenge: Challenge | None) -> dict:
    if challenge is None:
        return {"otp_code": None, "otp_expires_at": None, "otp_purpose": None}
    return {
        "otp_code": challenge.code,
        "otp_expires_at": challenge.expires_at.isoformat(),
        "otp_purpose": challenge.purpose.value,
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records and their completed catalogue items.

    Usage:
        store = IdentityStore("sqlite:///otpauth.db")
        identity_id = store.create_identity(Identity(email="a@x.com", password_hash=h))
        identity = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Identity queries
    # ------------------------------------------------------------------

    def create_identity(self, identity: Identity) -> str:
        """Insert a new identity and return its generated opaque ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The identity object is updated in place with id and timestamps.
        """
        identity_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _identities.insert().values(
                    id=identity_id,
                    email=identity.email,
                    password_hash=identity.password_hash,
                    is_verified=1 if identity.is_verified else 0,
                    created_at=now,
                    updated_at=now,
                    **_challenge_columns(identity.challenge),
                )
            )
            conn.commit()
        identity.id = identity_id
        identity.created_at = now
        identity.updated_at = now
        return identity_id

    def get_by_email(self, email: str) -> Identity | None:
        """Look up an identity by normalized email. Returns None if not found.

        Callers must normalize first; the column stores lowercase values only.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.email == email)).fetchone()
            if row is None:
                return None
            return _row_to_identity(row, self._completed_for(conn, row.id))

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.id == identity_id)).fetchone()
            if row is None:
                return None
            return _row_to_identity(row, self._completed_for(conn, row.id))

    def save_identity(self, identity: Identity) -> bool:
        """Persist the mutable fields of an existing identity.

        Writes password_hash, is_verified and the challenge slot. Returns True
        if a row was updated, False if the identity no longer exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where(_identities.c.id == identity.id)
                .values(
                    password_hash=identity.password_hash,
                    is_verified=1 if identity.is_verified else 0,
                    updated_at=now,
                    **_challenge_columns(identity.challenge),
                )
            )
            conn.commit()
        identity.updated_at = now
        return result.rowcount > 0

    def clear_challenge_if(self, identity_id: str, code: str) -> bool:
        """Clear the challenge slot only if it still holds code.

        Compare-and-clear in one UPDATE. Returns False when another request
        already consumed the code or a newer challenge replaced it.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where(_identities.c.id == identity_id)
                .where(_identities.c.otp_code == code)
                .values(updated_at=_now_iso(), **_challenge_columns(None))
            )
            conn.commit()
        return result.rowcount > 0

    def set_challenge(self, identity_id: str, challenge: Challenge | None) -> bool:
        """Replace (or clear, when challenge is None) the single challenge slot.

        One UPDATE statement -- the last writer wins.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where(_identities.c.id == identity_id)
                .values(updated_at=_now_iso(), **_challenge_columns(challenge))
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Completed catalogue items
    # ------------------------------------------------------------------

    def add_completed_item(self, identity_id: str, item_id: str) -> bool:
        """Record a completed catalogue item. Returns False if it was already recorded."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _completed_items.insert().values(
                        identity_id=identity_id,
                        item_id=item_id,
                        completed_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        return True

    def list_completed_items(self, identity_id: str) -> list[str]:
        """Return completed item references in completion order."""
        with self.engine.connect() as conn:
            return self._completed_for(conn, identity_id)

    def _completed_for(self, conn: Connection, identity_id: str) -> list[str]:
        rows = conn.execute(
            _completed_items.select()
            .where(_completed_items.c.identity_id == identity_id)
            .order_by(_completed_items.c.id)
        ).fetchall()
        return [r.item_id for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_identities.select().limit(1))
        except Exception:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row, completed_items: list[str]) -> Identity:
    challenge: Challenge | None = None
    if row.otp_code:
        challenge = Challenge(
            code=row.otp_code,
            expires_at=datetime.fromisoformat(row.otp_expires_at),
            purpose=ChallengePurpose(row.otp_purpose),
        )
    return Identity(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        is_verified=bool(row.is_verified),
        challenge=challenge,
        completed_items=completed_items,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
