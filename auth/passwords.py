"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which current bcrypt
releases reject with an explicit error.

bcrypt is CPU-bound by design. Callers on the HTTP path are plain `def`
endpoints, so FastAPI runs them in its worker thread pool and the event loop
keeps accepting requests while a hash is computed.
"""

from __future__ import annotations

from functools import cached_property

import bcrypt

_DUMMY_PASSWORD = "trailpass_timing_dummy"


class PasswordHasher:
    """One-way hash/verify with a fixed bcrypt cost factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("secret123")
        hasher.verify("secret123", digest)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password.

        bcrypt only accepts 72 bytes of input. AuthService rejects longer
        passwords before they get here.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """Return True if the plaintext matches the digest. Never raises."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            # Malformed or empty digest
            return False

    @cached_property
    def _dummy_hash(self) -> str:
        return self.hash(_DUMMY_PASSWORD)

    def verify_dummy(self, plain: str) -> bool:
        """Burn one verification against a throwaway hash.

        Called when the looked-up account does not exist so the response time
        of "unknown email" matches "wrong password". Always returns False.
        """
        self.verify(plain, self._dummy_hash)
        return False
