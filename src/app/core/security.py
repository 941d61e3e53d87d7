"""
Password Hashing

bcrypt-based one-way hashing for user passwords.

Stored hashes use the modular crypt format ($2b$<cost>$<salt+key>), so the
cost factor and salt travel with the hash. Raising BCRYPT_ROUNDS later does
not break verification of hashes created under the old cost.

bcrypt only reads the first 72 bytes of its input. Passwords are encoded and
cut to that length identically on both hash and verify.
"""

import asyncio
import logging
from functools import cached_property

import bcrypt

from app.core.config import settings

logger = logging.getLogger(__name__)

BCRYPT_MAX_PASSWORD_BYTES = 72

# Fixed input for the dummy hash used on unknown-user logins
_DUMMY_PASSWORD = b"school-portal-dummy-password"


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(plaintext: str, rounds: int | None = None) -> str:
    """
    Hash a password with a fresh random salt.

    Args:
        plaintext: The password to hash
        rounds: bcrypt cost factor (defaults to settings.bcrypt_rounds)

    Returns:
        Self-describing bcrypt hash string
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(plaintext), salt).decode("ascii")


def verify_password(plaintext: str, stored: str) -> bool:
    """
    Check a password against a stored bcrypt hash.

    Returns False for a mismatch and for any malformed stored value. A
    corrupt hash must never be treated as a match.
    """
    if not stored:
        return False

    try:
        return bcrypt.checkpw(_encode(plaintext), stored.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError):
        logger.warning("Stored password hash is malformed; rejecting verification")
        return False


class PasswordHasher:
    """
    Async facade over bcrypt.

    Hashing is deliberately slow, so both operations run in a worker thread
    to keep the event loop free for other requests.
    """

    def __init__(self, rounds: int | None = None):
        self.rounds = rounds or settings.bcrypt_rounds

    async def hash(self, plaintext: str) -> str:
        return await asyncio.to_thread(hash_password, plaintext, self.rounds)

    async def verify(self, plaintext: str, stored: str) -> bool:
        return await asyncio.to_thread(verify_password, plaintext, stored)

    @cached_property
    def dummy_hash(self) -> str:
        """A hash at this hasher's cost, used to equalize unknown-user timing."""
        return bcrypt.hashpw(
            _DUMMY_PASSWORD, bcrypt.gensalt(rounds=self.rounds)
        ).decode("ascii")

    async def verify_dummy(self, plaintext: str) -> None:
        """Spend the same verify cost as a real check, discarding the result."""
        dummy = await asyncio.to_thread(getattr, self, "dummy_hash")
        await self.verify(plaintext, dummy)


__all__ = [
    "BCRYPT_MAX_PASSWORD_BYTES",
    "PasswordHasher",
    "hash_password",
    "verify_password",
]
