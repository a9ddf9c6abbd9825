"""
auth/passwords.py -- Password hashing and credential verification.

bcrypt is used directly rather than through passlib: passlib's internal
wrap-bug detection feeds bcrypt a password longer than 72 bytes, which
bcrypt 4.x rejects outright. The salt and cost factor are embedded in the
stored hash, so verification needs nothing but the hash itself.

Timing equalization [C1]: CredentialVerifier.verify() runs bcrypt even when no
identity matched, against a dummy hash of the same cost. An unknown email and
a wrong password therefore cost the same and return the same False.
"""

from __future__ import annotations

import bcrypt

from auth.models import Identity

# bcrypt only looks at the first 72 bytes of its input; bcrypt 4.1+ raises
# ValueError for longer input instead of truncating.
MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = "productapi_timing_dummy"


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError for passwords longer than MAX_PASSWORD_BYTES. The
    service rejects those as invalid input before hashing.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    An over-long candidate or a malformed stored hash is a mismatch, not an
    error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


class CredentialVerifier:
    """Hashes new passwords and checks candidates against stored hashes.

    Usage:
        verifier = CredentialVerifier(rounds=12)
        identity.password_hash = verifier.hash("s3cret")
        verifier.verify(identity, "s3cret")   # True
        verifier.verify(None, "s3cret")       # False, after a full bcrypt run
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first failed lookup is not measurably slower.
        self._dummy_hash = hash_password(_DUMMY_PASSWORD, rounds=rounds)

    def hash(self, plain: str) -> str:
        return hash_password(plain, rounds=self.rounds)

    def verify(self, identity: Identity | None, candidate: str) -> bool:
        if identity is None or not identity.password_hash:
            # Do NOT return before running bcrypt [C1]
            verify_password(candidate, self._dummy_hash)
            return False
        return verify_password(candidate, identity.password_hash)
