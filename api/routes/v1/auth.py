"""
api/routes/v1/auth.py -- Session credential REST endpoints.

Routes:
  POST /api/v1/auth/register       -- create an identity; no tokens issued
  POST /api/v1/auth/login          -- email + password -> token pair
  POST /api/v1/auth/refresh-token  -- userId + refresh token -> rotated token pair
  POST /api/v1/auth/logout         -- userId + refresh token -> session cleared
  GET  /api/v1/auth/me             -- current identity (requires bearer token)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] AuthService.login() merges unknown email and wrong password into one
       response, with equal bcrypt cost on both paths. Do not add a separate
       "user not found" branch here.
  [M5] Cache-Control: no-store on every response that carries tokens.
  Logs name the email or user id, never passwords or tokens.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ErrorDetail,
    ErrorResponse,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenPairResponse,
)
from auth.dependencies import get_current_identity
from auth.models import AuthErrorKind, AuthFailure, Identity
from auth.service import AuthService
from core.config import get_settings

logger = logging.getLogger("productapi.api")

# Auth policy:
# - POST /api/v1/auth/register:       public
# - POST /api/v1/auth/login:          public, rate-limited
# - POST /api/v1/auth/refresh-token:  public -- possession of the refresh token is the credential
# - POST /api/v1/auth/logout:         public -- same
# - GET  /api/v1/auth/me:             requires bearer token (get_current_identity)
router = APIRouter()

_FAILURE_STATUS = {
    AuthErrorKind.invalid_input: 400,
    AuthErrorKind.duplicate_email: 409,
    AuthErrorKind.invalid_credentials: 401,
    AuthErrorKind.invalid_session: 401,
}


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=IdentityResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an identity with role "User". The caller must log in afterwards."""
    service: AuthService = request.app.state.auth_service
    result = service.register(body.username, body.email, body.password)
    if isinstance(result, AuthFailure):
        logger.warning("Registration rejected (%s) for email: %s", result.kind.value, body.email)
        return _failure_response(result)

    logger.info("New user registered - user_id: %s, email: %s", result.id, result.email)
    return JSONResponse(status_code=201, content=IdentityResponse.from_identity(result).model_dump())


@router.post("/auth/login", response_model=TokenPairResponse)
@limiter.limit(_login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return an access/refresh token pair.

    The same invalid_credentials error covers a wrong email and a wrong
    password.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    if isinstance(result, AuthFailure):
        logger.warning("Failed login attempt for email: %s", body.email)
        return _failure_response(result)

    logger.info("Successful login for email: %s", body.email)
    return _token_response(TokenPairResponse.from_pair(result))


@router.post("/auth/refresh-token", response_model=TokenPairResponse)
def refresh_token(request: Request, body: RefreshTokenRequest) -> JSONResponse:
    """Exchange the current refresh token for a new pair. The presented token is spent."""
    service: AuthService = request.app.state.auth_service
    result = service.refresh_session(str(body.user_id), body.refresh_token)
    if isinstance(result, AuthFailure):
        logger.warning("Rejected token refresh for user_id: %s", body.user_id)
        return _failure_response(result)

    logger.info("Token refreshed successfully for user_id: %s", body.user_id)
    return _token_response(TokenPairResponse.from_pair(result))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, body: RefreshTokenRequest) -> JSONResponse:
    """End the session that owns this refresh token.

    Access tokens already issued stay valid until they expire; they are
    self-contained and not tracked server-side.
    """
    service: AuthService = request.app.state.auth_service
    failure = service.revoke_session(str(body.user_id), body.refresh_token)
    if failure is not None:
        logger.warning("Rejected logout for user_id: %s", body.user_id)
        return _failure_response(failure)

    logger.info("Session revoked for user_id: %s", body.user_id)
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=IdentityResponse)
async def me(current: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the identity behind the bearer token, role read from the store."""
    return IdentityResponse.from_identity(current)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(pair: TokenPairResponse) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=pair.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _failure_response(failure: AuthFailure) -> JSONResponse:
    resp = JSONResponse(
        status_code=_FAILURE_STATUS[failure.kind],
        content=ErrorResponse(
            error=ErrorDetail(code=failure.kind.value, message=failure.message),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
