"""
Token Store

Issues and redeems single-use, time-bounded tokens for a (subject, purpose)
pair.

Guarantees:
- At most one live token per (subject, purpose): issuing supersedes the
  previous token in the same statement that stores the new one
- A token is redeemable at most once, even under concurrent consumption
- A token is never redeemable at or after its expiry instant
- Only SHA-256 hashes are stored; raw tokens are returned to the caller and
  never logged

Not-found is a value (None), not an exception: callers cannot tell an
expired token from one that never existed.
"""

import hashlib
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import StoreUnavailableError
from app.modules.tokens import repository
from app.modules.tokens.models import AuthToken, TokenPurpose

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits of entropy when using token_urlsafe
MAX_ISSUE_ATTEMPTS = 3

Clock = Callable[[], datetime]


def hash_token(token: str) -> str:
    """
    Hash a token for storage using SHA-256.

    Returns:
        Hex-encoded SHA-256 hash of the token
    """
    return hashlib.sha256(token.encode()).hexdigest()


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_token() -> str:
    """URL-safe random token with TOKEN_BYTES of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class TokenStore:
    """
    Persistent store of outstanding auth tokens.

    Args:
        clock: Returns the current UTC time; injectable for deterministic
            expiry tests
        token_factory: Produces raw tokens
        max_attempts: Issue retries on a token hash collision before giving up
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        token_factory: Callable[[], str] = generate_token,
        max_attempts: int = MAX_ISSUE_ATTEMPTS,
    ):
        self.clock = clock
        self.token_factory = token_factory
        self.max_attempts = max_attempts

    async def issue(
        self,
        db: AsyncSession,
        subject_id: str,
        purpose: TokenPurpose,
        ttl: timedelta,
    ) -> str:
        """
        Issue a new token, superseding any outstanding one for the pair.

        A ttl of zero or less yields a token that is already expired.

        Returns:
            The raw token (only its hash is persisted)

        Raises:
            StoreUnavailableError: If no unique token could be stored
        """
        for attempt in range(1, self.max_attempts + 1):
            token = self.token_factory()
            now = self.clock()

            try:
                await repository.upsert_token(
                    db,
                    token_hash=hash_token(token),
                    subject_id=str(subject_id),
                    purpose=purpose,
                    issued_at=now,
                    expires_at=now + ttl,
                )
            except IntegrityError:
                await db.rollback()
                logger.warning(
                    f"Token hash collision issuing {purpose.value} token "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue

            logger.info(f"Issued {purpose.value} token for subject {subject_id}")
            return token

        logger.error(f"Could not issue a unique {purpose.value} token for subject {subject_id}")
        raise StoreUnavailableError("Could not issue a unique token.")

    async def consume(
        self,
        db: AsyncSession,
        token: str,
        purpose: TokenPurpose,
    ) -> str | None:
        """
        Redeem a token.

        The stored row is deleted whether or not it is still valid. The
        subject id is returned only for a matching purpose before expiry.

        Returns:
            The subject id, or None if the token is unknown, already used,
            expired, or issued for another purpose
        """
        if not token:
            return None

        row = await repository.delete_by_hash_returning(db, hash_token(token))
        if row is None:
            logger.info(f"Rejected {purpose.value} token: not found")
            return None

        if row.purpose != purpose:
            logger.warning(
                f"Rejected token for subject {row.subject_id}: "
                f"purpose {row.purpose.value} != {purpose.value}"
            )
            return None

        if self.clock() >= repository.as_utc(row.expires_at):
            logger.info(f"Rejected {purpose.value} token for subject {row.subject_id}: expired")
            return None

        logger.info(f"Consumed {purpose.value} token for subject {row.subject_id}")
        return row.subject_id

    async def peek(
        self,
        db: AsyncSession,
        token: str,
        purpose: TokenPurpose,
    ) -> AuthToken | None:
        """
        Look up a live token without consuming it.

        An expired row found here is deleted.
        """
        if not token:
            return None

        record = await repository.get_by_hash(db, hash_token(token))
        if record is None or record.purpose != purpose:
            return None

        if self.clock() >= repository.as_utc(record.expires_at):
            await repository.delete_token(db, record.id)
            return None

        return record

    async def revoke_all(
        self,
        db: AsyncSession,
        subject_id: str,
        purpose: TokenPurpose | None = None,
    ) -> int:
        """
        Delete every outstanding token for a subject.

        Returns:
            Number of tokens revoked
        """
        count = await repository.delete_for_subject(db, str(subject_id), purpose)
        if count:
            scope = purpose.value if purpose else "all"
            logger.info(f"Revoked {count} token(s) ({scope}) for subject {subject_id}")
        return count

    async def sweep(self, db: AsyncSession) -> int:
        """
        Delete every expired token.

        Returns:
            Number of tokens removed
        """
        count = await repository.delete_expired(db, self.clock())
        logger.info(f"Swept {count} expired token(s)")
        return count


__all__ = ["TokenStore", "generate_token", "hash_token", "utc_now"]
