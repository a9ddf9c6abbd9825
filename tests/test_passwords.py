"""
tests/test_passwords.py -- Password hashing and CredentialVerifier.

Covers:
  - Hashes are salted (same input, different hash) and verify correctly
  - Mismatch, malformed hash and over-long candidate all return False
  - verify(None, ...) returns False (unknown identity)
"""

from __future__ import annotations

import pytest

from auth.models import Identity
from auth.passwords import MAX_PASSWORD_BYTES, CredentialVerifier, hash_password, verify_password


@pytest.fixture(scope="module")
def verifier() -> CredentialVerifier:
    return CredentialVerifier(rounds=4)


def _identity(password_hash: str) -> Identity:
    return Identity(id="id-1", username="alice", email="a@x.com", password_hash=password_hash)


class TestHashing:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password("pw123", rounds=4)
        assert hashed != "pw123"
        assert verify_password("pw123", hashed)

    def test_hash_is_salted(self) -> None:
        """The salt lives inside the hash, so two hashes of one password differ."""
        assert hash_password("pw123", rounds=4) != hash_password("pw123", rounds=4)

    def test_wrong_password(self) -> None:
        assert not verify_password("pw124", hash_password("pw123", rounds=4))

    def test_malformed_hash_is_mismatch(self) -> None:
        assert verify_password("pw123", "not-a-bcrypt-hash") is False

    def test_over_long_candidate_is_mismatch(self) -> None:
        hashed = hash_password("pw123", rounds=4)
        assert verify_password("x" * (MAX_PASSWORD_BYTES + 1), hashed) is False


class TestCredentialVerifier:
    def test_verify_match(self, verifier: CredentialVerifier) -> None:
        identity = _identity(verifier.hash("pw123"))
        assert verifier.verify(identity, "pw123") is True

    def test_verify_mismatch(self, verifier: CredentialVerifier) -> None:
        identity = _identity(verifier.hash("pw123"))
        assert verifier.verify(identity, "wrong") is False

    def test_verify_unknown_identity(self, verifier: CredentialVerifier) -> None:
        """No identity -> False, same as a wrong password."""
        assert verifier.verify(None, "pw123") is False

    def test_verifier_uses_configured_rounds(self, verifier: CredentialVerifier) -> None:
        assert verifier.hash("pw123").startswith("$2b$04$")
