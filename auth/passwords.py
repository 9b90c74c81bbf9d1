"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

Every hash() call draws a fresh salt, so the same plaintext produces a
different hash each time. The cost factor comes from Settings.bcrypt_rounds
(12 by default, roughly tens of milliseconds per call).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes of its input.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted one-way hashing and verification of plaintext passwords.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("secret1")
        hasher.verify("secret1", stored)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("wateraccounts_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain with a freshly generated salt."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        A wrong password returns False. A malformed stored hash raises
        ValueError from bcrypt and is left to propagate.
        """
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt comparison without a real hash.

        Login calls this when the email is unknown so the response takes as
        long as a wrong-password response and does not reveal whether the
        account exists.
        """
        bcrypt.checkpw(_encode(plain), self._dummy_hash.encode("utf-8"))
