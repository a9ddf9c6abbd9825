"""
auth/service.py -- Register, login, refresh and logout flows.

AuthService composes the credential verifier, the access token issuer, the
refresh token generator and an injected IdentityStore. Per identity the
session moves through:

    NoSession --login--> ActiveSession --refresh--> ActiveSession (rotated)
                              |                          |
                              +--expiry / logout--> NoSession

Every flow returns either its success value or one of the shared AuthFailure
values from auth.models; nothing here raises for an ordinary bad request and
nothing retries. Two signals are deliberately merged:

  - login: unknown email and wrong password both return INVALID_CREDENTIALS.
  - refresh / logout: unknown user, wrong token and expired token all return
    INVALID_SESSION. A refresh token that was already rotated away is just a
    wrong token; there is no grace window and no reuse detection.

The service does not log. The HTTP boundary decides what to record.
"""

from __future__ import annotations

import hmac
import uuid
from datetime import timedelta

from auth.models import (
    DEFAULT_ROLE,
    DUPLICATE_EMAIL,
    INVALID_CREDENTIALS,
    INVALID_INPUT,
    INVALID_SESSION,
    AuthFailure,
    Identity,
    TokenPair,
)
from auth.passwords import MAX_PASSWORD_BYTES, CredentialVerifier
from auth.store import MAX_EMAIL_LENGTH, DuplicateEmailError, IdentityStore
from auth.tokens import REFRESH_TOKEN_LIFETIME, AccessTokenIssuer, generate_refresh_token
from core.clock import Clock, utc_now
from core.config import Settings


class AuthService:
    """Session credential orchestration for one identity store.

    Usage:
        service = AuthService.from_settings(store, get_settings())
        service.register("alice", "a@x.com", "pw123")
        pair = service.login("a@x.com", "pw123")
        pair = service.refresh_session(alice_id, pair.refresh_token)
    """

    def __init__(
        self,
        store: IdentityStore,
        issuer: AccessTokenIssuer,
        verifier: CredentialVerifier | None = None,
        refresh_lifetime: timedelta = REFRESH_TOKEN_LIFETIME,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.verifier = verifier or CredentialVerifier()
        self.refresh_lifetime = refresh_lifetime
        self._clock = clock

    @classmethod
    def from_settings(cls, store: IdentityStore, settings: Settings, clock: Clock = utc_now) -> AuthService:
        return cls(
            store=store,
            issuer=AccessTokenIssuer.from_settings(settings, clock=clock),
            verifier=CredentialVerifier(rounds=settings.bcrypt_rounds),
            refresh_lifetime=timedelta(days=settings.refresh_token_expire_days),
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def register(self, username: str | None, email: str, password: str) -> Identity | AuthFailure:
        """Create an identity. No tokens are issued; the caller logs in next."""
        if self.store.find_by_email(email) is not None:
            return DUPLICATE_EMAIL
        if not _valid_registration(email, password):
            return INVALID_INPUT

        identity = Identity(
            id=str(uuid.uuid4()),
            username=username or "",
            email=email,
            password_hash=self.verifier.hash(password),
            role=DEFAULT_ROLE,
        )
        try:
            self.store.insert(identity)
        except DuplicateEmailError:
            return DUPLICATE_EMAIL
        return identity

    def login(self, email: str, password: str) -> TokenPair | AuthFailure:
        identity = self.store.find_by_email(email)
        if not self.verifier.verify(identity, password):
            return INVALID_CREDENTIALS
        pair = self._start_session(identity)
        return pair if pair is not None else INVALID_CREDENTIALS

    def refresh_session(self, user_id: str, refresh_token: str) -> TokenPair | AuthFailure:
        """Rotate: exchange the current refresh token for a new pair.

        The old token stops working the moment this returns. If another
        refresh rotated the same token in between our read and our write, the
        conditional update matches nothing and this call fails instead.
        """
        identity = self._load_session(user_id, refresh_token)
        if identity is None:
            return INVALID_SESSION
        pair = self._start_session(identity, expected_refresh_token=refresh_token)
        return pair if pair is not None else INVALID_SESSION

    def revoke_session(self, user_id: str, refresh_token: str) -> None | AuthFailure:
        """Logout: clear the session so the refresh token can no longer be used."""
        identity = self._load_session(user_id, refresh_token)
        if identity is None:
            return INVALID_SESSION
        identity.refresh_token = None
        identity.refresh_token_expiry = None
        identity.token_issued_at = None
        if not self.store.update(identity, expected_refresh_token=refresh_token):
            return INVALID_SESSION
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_session(self, user_id: str, refresh_token: str) -> Identity | None:
        """Return the identity if refresh_token is its current, unexpired token."""
        identity = self.store.find_by_id(user_id)
        if identity is None or identity.refresh_token is None:
            return None
        if not hmac.compare_digest(identity.refresh_token.encode("utf-8"), refresh_token.encode("utf-8")):
            return None
        # Inclusive: the expiry instant itself is already invalid.
        if not identity.has_active_session(self._clock()):
            return None
        return identity

    def _start_session(self, identity: Identity, **update_kwargs) -> TokenPair | None:
        """Issue a pair and overwrite the session fields. None if the write matched no row."""
        now = self._clock()
        access_token = self.issuer.issue(identity)
        refresh_token = generate_refresh_token()

        identity.refresh_token = refresh_token
        identity.refresh_token_expiry = now + self.refresh_lifetime
        identity.token_issued_at = now
        if not self.store.update(identity, **update_kwargs):
            return None
        return TokenPair(access_token=access_token, refresh_token=refresh_token)


def _valid_registration(email: str, password: str) -> bool:
    if not email or not email.strip() or len(email) > MAX_EMAIL_LENGTH:
        return False
    if not password or not password.strip():
        return False
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES
