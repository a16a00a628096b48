"""
auth/passwords.py -- One-way password hashing and verification.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects
with an explicit error.

Every hash() call draws a fresh salt from bcrypt.gensalt(), so two digests of
the same password differ yet both verify. bcrypt.checkpw() compares digests
in constant time.

Raw passwords go no further than this module: the store and codec only ever
see digests.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError

logger = logging.getLogger("tracker.auth")

_DEFAULT_ROUNDS = 12

# bcrypt reads at most 72 bytes. Older releases truncate silently, newer ones
# raise, so the limit is enforced here for every version.
MAX_PASSWORD_BYTES = 72


def password_byte_length(plaintext: str) -> int:
    return len(plaintext.encode("utf-8"))


class CredentialHasher:
    """bcrypt wrapper with a configurable cost factor.

    Usage:
        hasher = CredentialHasher()
        digest = hasher.hash("secret1")
        hasher.verify("secret1", digest)  # True
    """

    def __init__(self, rounds: int = _DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt digest of plaintext.

        Raises HashingError for passwords over MAX_PASSWORD_BYTES of UTF-8;
        the HTTP layer rejects those before they get here.
        """
        if password_byte_length(plaintext) > MAX_PASSWORD_BYTES:
            raise HashingError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
        try:
            salt = bcrypt.gensalt(rounds=self._rounds)
            return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")
        except (ValueError, OSError) as exc:
            raise HashingError(f"password hashing failed: {exc}") from exc

    def verify(self, plaintext: str, digest: str) -> bool:
        """Return True if plaintext matches digest.

        Malformed digests and passwords too long to have been hashed return False.
        """
        try:
            if password_byte_length(plaintext) > MAX_PASSWORD_BYTES:
                return False
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def burn(self, plaintext: str) -> None:
        """Run one verification against a throwaway digest and discard the result.

        Login calls this when the identifier is unknown so that path costs the
        same bcrypt work as a wrong password, and response time does not
        reveal whether an account exists.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("tracker_timing_dummy")
        self.verify(plaintext, self._dummy_hash)
