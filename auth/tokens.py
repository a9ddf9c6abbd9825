"""
auth/tokens.py -- Access token signing and refresh token generation.

Security design decisions:
  Access tokens: python-jose, HS512. Claims are sub (identity id as a string)
       and email, wrapped in iss / aud / exp from configuration. The role is
       NOT embedded -- anything that needs it re-reads the identity.
       Issuance never verifies; decode_access_token() is for the HTTP
       boundary and returns None on any failure so the route layer can turn
       that into a 401.

  Refresh tokens: secrets.token_bytes(32), base64-encoded. Opaque bearer
       secret with 256 bits of entropy and no embedded claims; it is only
       meaningful when looked up against the identity store.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from core.clock import Clock, utc_now

if TYPE_CHECKING:
    from auth.models import Identity
    from core.config import Settings

ALGORITHM = "HS512"

ACCESS_TOKEN_LIFETIME = timedelta(days=1)
REFRESH_TOKEN_LIFETIME = timedelta(days=7)

REFRESH_TOKEN_BYTES = 32


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------


class AccessTokenIssuer:
    """Builds signed, time-bounded bearer tokens for an identity.

    Output is deterministic for a fixed clock, key and identity.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        audience: str,
        lifetime: timedelta = ACCESS_TOKEN_LIFETIME,
        clock: Clock = utc_now,
    ) -> None:
        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.lifetime = lifetime
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utc_now) -> AccessTokenIssuer:
        return cls(
            secret_key=settings.secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            lifetime=timedelta(seconds=settings.access_token_expire_seconds),
            clock=clock,
        )

    def issue(self, identity: Identity) -> str:
        expire = self._clock() + self.lifetime
        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "iss": self.issuer,
            "aud": self.audience,
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: str, issuer: str, audience: str) -> dict | None:
    """Verify signature, algorithm, expiry, issuer and audience.

    Returns the claims dict, or None if any check fails. Expiry is checked
    against the wall clock by python-jose.
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            audience=audience,
            issuer=issuer,
        )
    except JWTError:
        return None
    if not payload.get("sub") or "email" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


def generate_refresh_token() -> str:
    """Return 32 cryptographically random bytes, base64-encoded (44 chars)."""
    return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")
