"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token arrives as "Authorization: Bearer <token>". Verification
(signature, algorithm, expiry, issuer, audience) happens here, at the HTTP
boundary; auth/tokens.py only issues.

Tokens carry no role claim, so the identity is always re-read from the store
and anything role-based must use the stored Identity.role.

try_get_current_identity() is the soft variant (returns None on failure).
get_current_identity() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: may import from fastapi because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.tokens import decode_access_token
from core.config import get_settings

logger = logging.getLogger("productapi.auth")


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def try_get_current_identity(request: Request) -> Identity | None:
    """Authenticate the request from its bearer token.

    Returns the Identity on success, None on any failure. Never raises.
    """
    token = _bearer_token(request)
    if token is None:
        return None

    settings = get_settings()
    payload = decode_access_token(
        token,
        secret_key=settings.secret_key,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )
    if payload is None:
        logger.debug("Bearer token rejected on %s %s", request.method, request.url.path)
        return None
    return request.app.state.user_store.find_by_id(payload["sub"])


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = try_get_current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
