"""
API request and response models for ProductAPI REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire names are camelCase (userId, accessToken, refreshToken). Models accept
either the alias or the field name on input and emit the alias on output.

Emails are plain strings, not EmailStr: email-validator normalizes the domain
part, and lookups must be exact matches of what the user registered.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity, TokenPair

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Emptiness, the email length and the 72-byte password limit are checked by
    the service so they come back as invalid_input, not as a 422.
    """

    email: str
    password: str
    username: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No length limits: an over-long email or password is simply a failed login.
    """

    email: str
    password: str


class RefreshTokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh-token and /auth/logout."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(alias="userId")
    refresh_token: str = Field(alias="refreshToken", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenPairResponse(BaseModel):
    """Access + refresh token pair."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class IdentityResponse(BaseModel):
    """Public view of an Identity. Never includes the hash or session fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    role: str
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            role=identity.role,
            created_at=identity.created_at or "",
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
