"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, the service and the routes do the work.

Failures are values, not exceptions. Each AuthErrorKind has exactly one shared
AuthFailure instance, so flows that merge two causes into one outward signal
(unknown email vs. wrong password) return the identical object.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

DEFAULT_ROLE = "User"


@dataclass
class Identity:
    """A registered principal.

    email is the login key and is matched exactly (case-sensitive).
    password_hash is a bcrypt hash with the salt embedded; it never leaves the
    auth layer. The three session fields are all set or all None:
    refresh_token is the only valid refresh token for this identity, and
    refresh_token_expiry is token_issued_at plus the refresh lifetime.
    """

    id: str
    username: str
    email: str
    password_hash: str
    role: str = DEFAULT_ROLE
    refresh_token: str | None = None
    refresh_token_expiry: datetime | None = None
    token_issued_at: datetime | None = None
    created_at: str | None = None

    def has_active_session(self, now: datetime) -> bool:
        return (
            self.refresh_token is not None
            and self.refresh_token_expiry is not None
            and now < self.refresh_token_expiry
        )


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token returned by login and refresh. Never persisted."""

    access_token: str
    refresh_token: str


class AuthErrorKind(str, Enum):
    invalid_input = "invalid_input"
    duplicate_email = "duplicate_email"
    invalid_credentials = "invalid_credentials"
    invalid_session = "invalid_session"


@dataclass(frozen=True)
class AuthFailure:
    """Discriminated failure returned by AuthService flows."""

    kind: AuthErrorKind
    message: str


INVALID_INPUT = AuthFailure(AuthErrorKind.invalid_input, "A non-empty email and a password of 1-72 bytes are required.")
DUPLICATE_EMAIL = AuthFailure(AuthErrorKind.duplicate_email, "An account with that email already exists.")
INVALID_CREDENTIALS = AuthFailure(AuthErrorKind.invalid_credentials, "Invalid email or password.")
INVALID_SESSION = AuthFailure(AuthErrorKind.invalid_session, "Invalid or expired refresh token.")
