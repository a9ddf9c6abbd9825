"""
tests/test_tokens.py -- Access token issuance/verification and refresh tokens.

Covers:
  - Issued token is a three-part HS512 JWT with sub, email, iss, aud, exp only
  - exp is issuance time + configured lifetime
  - Same clock + key + identity -> same token
  - decode_access_token() accepts the untouched token and rejects a different
    key, issuer, audience, an elapsed expiry and a tampered payload
  - Refresh tokens decode to 32 random bytes and do not repeat

The clock fixture is a FakeClock from conftest.py.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import timedelta

import pytest
from jose import jwt

from auth.models import Identity
from auth.tokens import ALGORITHM, REFRESH_TOKEN_BYTES, AccessTokenIssuer, decode_access_token, generate_refresh_token
from core.config import Settings


@pytest.fixture
def identity() -> Identity:
    return Identity(
        id="2f1b7c52-9a3e-4d8e-b1f0-6c1f3e2a9d44",
        username="alice",
        email="a@x.com",
        password_hash="irrelevant",
        role="Admin",
    )


@pytest.fixture
def issuer(settings: Settings, clock) -> AccessTokenIssuer:
    return AccessTokenIssuer.from_settings(settings, clock=clock)


def _decode(token: str, settings: Settings, **overrides: str) -> dict | None:
    kwargs = {
        "secret_key": settings.secret_key,
        "issuer": settings.jwt_issuer,
        "audience": settings.jwt_audience,
    }
    kwargs.update(overrides)
    return decode_access_token(token, **kwargs)


class TestIssue:
    def test_token_is_hs512_jwt(self, issuer: AccessTokenIssuer, identity: Identity) -> None:
        token = issuer.issue(identity)
        assert token.count(".") == 2
        assert jwt.get_unverified_header(token)["alg"] == ALGORITHM == "HS512"

    def test_claims(self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings, clock) -> None:
        """Only sub/email plus the iss/aud/exp envelope. No role claim even for a non-default role."""
        claims = jwt.get_unverified_claims(issuer.issue(identity))
        assert claims == {
            "sub": identity.id,
            "email": "a@x.com",
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "exp": int((clock.now + timedelta(days=1)).timestamp()),
        }

    def test_deterministic_for_fixed_clock(self, issuer: AccessTokenIssuer, identity: Identity) -> None:
        assert issuer.issue(identity) == issuer.issue(identity)

    def test_expiry_moves_with_clock(self, issuer: AccessTokenIssuer, identity: Identity, clock) -> None:
        first = issuer.issue(identity)
        clock.advance(seconds=5)
        assert issuer.issue(identity) != first


class TestDecode:
    def test_round_trip(self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings) -> None:
        payload = _decode(issuer.issue(identity), settings)
        assert payload is not None
        assert payload["sub"] == identity.id
        assert payload["email"] == identity.email

    def test_wrong_key_rejected(self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings) -> None:
        assert _decode(issuer.issue(identity), settings, secret_key="z" * 64) is None

    def test_wrong_issuer_rejected(self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings) -> None:
        assert _decode(issuer.issue(identity), settings, issuer="someone-else") is None

    def test_wrong_audience_rejected(self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings) -> None:
        assert _decode(issuer.issue(identity), settings, audience="other-app") is None

    def test_expired_rejected(
        self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings, clock
    ) -> None:
        """A token issued two days ago with a one-day lifetime has elapsed."""
        clock.advance(days=-2)
        assert _decode(issuer.issue(identity), settings) is None

    def test_tampered_payload_rejected(
        self, issuer: AccessTokenIssuer, identity: Identity, settings: Settings
    ) -> None:
        """Swapping the claims segment while keeping the old signature must fail."""
        header, _payload, signature = issuer.issue(identity).split(".")
        forged = json.dumps({"sub": "someone-else", "email": "evil@x.com"}).encode()
        forged_segment = base64.urlsafe_b64encode(forged).rstrip(b"=").decode()
        assert _decode(f"{header}.{forged_segment}.{signature}", settings) is None

    def test_garbage_rejected(self, settings: Settings) -> None:
        assert _decode("not.a.token", settings) is None

    def test_rejection_is_silent(self, settings: Settings, caplog: pytest.LogCaptureFixture) -> None:
        """Rejections are reported by return value; logging is left to the HTTP boundary."""
        caplog.set_level(logging.DEBUG)
        assert _decode("not.a.token", settings) is None
        assert caplog.records == []


class TestRefreshToken:
    def test_decodes_to_32_bytes(self) -> None:
        assert len(base64.b64decode(generate_refresh_token(), validate=True)) == REFRESH_TOKEN_BYTES == 32

    def test_tokens_do_not_repeat(self) -> None:
        tokens = {generate_refresh_token() for _ in range(200)}
        assert len(tokens) == 200
