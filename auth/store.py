"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_identity / _identity_values are the
mappers. The service and route code never touch SQL directly, and the service
only depends on the IdentityStore protocol, so any store with the same four
methods can be injected.

Security:
  All queries use bound parameters. No f-strings in SQL.

  email is UNIQUE at the SQL level and compared with the default BINARY
  collation, so lookups and the uniqueness check are both exact,
  case-sensitive matches.

Concurrency:
  Every method opens its own connection and commits before returning, so each
  write is atomic for the single row it touches. update() optionally takes the
  refresh token the caller read; the UPDATE then only matches while the row
  still holds that token (compare-and-swap), which stops two concurrent
  refreshes from both rotating the same token.

Timestamps are stored as ISO 8601 text and come back as aware datetimes.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_ROLE, Identity

MAX_EMAIL_LENGTH = 255

# Sentinel for "do not check the stored refresh token" in update().
_ANY = object()

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4 string
    Column("username", String(255), nullable=False, server_default=""),
    Column("email", String(MAX_EMAIL_LENGTH), nullable=False, unique=True),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("password_hash", Text, nullable=False),
    Column("refresh_token", Text),  # NULL when no session is active
    Column("refresh_token_expiry", String(32)),
    Column("token_issued_at", String(32)),
    Column("created_at", String(32), nullable=False),
)


class DuplicateEmailError(Exception):
    """An identity with this email already exists."""


class IdentityStore(Protocol):
    """Storage interface the auth service depends on."""

    def find_by_email(self, email: str) -> Identity | None: ...

    def find_by_id(self, identity_id: str) -> Identity | None: ...

    def insert(self, identity: Identity) -> None: ...

    def update(self, identity: Identity, expected_refresh_token: object = _ANY) -> bool: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQL-backed IdentityStore.

    Usage:
        store = UserStore("sqlite:///:memory:")
        store.insert(Identity(id=str(uuid4()), username="alice", email="a@x.com", password_hash=h))
        identity = store.find_by_email("a@x.com")
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
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Identity | None:
        """Look up an identity by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, identity_id: str) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, identity: Identity) -> None:
        """Insert a new identity. Sets identity.created_at.

        Raises DuplicateEmailError if the email is already taken. The service
        checks first; this catches the race where two registrations for the
        same email both pass that check.
        """
        identity.created_at = identity.created_at or _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert().values(id=identity.id, **_identity_values(identity)))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError(identity.email) from exc

    def update(self, identity: Identity, expected_refresh_token: object = _ANY) -> bool:
        """Write every mutable field of identity back to its row.

        When expected_refresh_token is given, the row is only updated if it
        still holds that refresh token. Returns True if a row was updated,
        False if the id was not found or the stored token had changed.
        """
        condition = _users.c.id == identity.id
        if expected_refresh_token is not _ANY:
            condition = condition & (_users.c.refresh_token == expected_refresh_token)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(condition).values(**_identity_values(identity)))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _identity_values(identity: Identity) -> dict:
    return {
        "username": identity.username,
        "email": identity.email,
        "role": identity.role,
        "password_hash": identity.password_hash,
        "refresh_token": identity.refresh_token,
        "refresh_token_expiry": _to_iso(identity.refresh_token_expiry),
        "token_issued_at": _to_iso(identity.token_issued_at),
        "created_at": identity.created_at,
    }


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        email=row.email,
        role=row.role,
        password_hash=row.password_hash,
        refresh_token=row.refresh_token,
        refresh_token_expiry=_from_iso(row.refresh_token_expiry),
        token_issued_at=_from_iso(row.token_issued_at),
        created_at=row.created_at,
    )
