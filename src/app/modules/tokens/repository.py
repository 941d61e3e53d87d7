"""
Auth Token Repository

Database operations for auth tokens. Every mutation is a single statement
followed by a commit, so a concurrent caller observes either the whole
change or none of it.

Design Principles:
- Lookups are by token hash only; raw tokens never reach this layer
- Issue is one upsert keyed on (subject_id, purpose)
- Consume is one DELETE ... RETURNING, so a row can be claimed only once
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AuthToken, TokenPurpose

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends that drop tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _dialect_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Token upsert is not supported on {dialect}") from None


async def upsert_token(
    db: AsyncSession,
    *,
    token_hash: str,
    subject_id: str,
    purpose: TokenPurpose,
    issued_at: datetime,
    expires_at: datetime,
) -> None:
    """
    Store a token, replacing any existing token for (subject_id, purpose).

    Raises:
        IntegrityError: If token_hash collides with another subject's token.
            The caller owns the rollback.
    """
    insert = _dialect_insert(db)
    stmt = insert(AuthToken).values(
        id=str(uuid4()),
        token_hash=token_hash,
        subject_id=subject_id,
        purpose=purpose,
        issued_at=issued_at,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["subject_id", "purpose"],
        set_={
            "token_hash": stmt.excluded.token_hash,
            "issued_at": stmt.excluded.issued_at,
            "expires_at": stmt.excluded.expires_at,
        },
    )

    await db.execute(stmt)
    await db.commit()


async def delete_by_hash_returning(db: AsyncSession, token_hash: str) -> Row | None:
    """
    Atomically remove a token and return its (subject_id, purpose, expires_at).

    Returns None when no row matched. Of two concurrent callers for the same
    hash, at most one gets the row back.
    """
    result = await db.execute(
        delete(AuthToken)
        .where(AuthToken.token_hash == token_hash)
        .returning(AuthToken.subject_id, AuthToken.purpose, AuthToken.expires_at)
        .execution_options(synchronize_session=False)
    )
    row = result.one_or_none()
    await db.commit()
    return row


async def get_by_hash(db: AsyncSession, token_hash: str) -> AuthToken | None:
    """Get a token by its hash."""
    result = await db.execute(select(AuthToken).where(AuthToken.token_hash == token_hash))
    return result.scalar_one_or_none()


async def delete_token(db: AsyncSession, token_id: str) -> None:
    """Delete a single token row by id."""
    await db.execute(
        delete(AuthToken)
        .where(AuthToken.id == token_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def delete_for_subject(
    db: AsyncSession,
    subject_id: str,
    purpose: TokenPurpose | None = None,
) -> int:
    """
    Delete every token for a subject, optionally restricted to one purpose.

    Returns:
        Number of tokens deleted
    """
    stmt = delete(AuthToken).where(AuthToken.subject_id == subject_id)
    if purpose is not None:
        stmt = stmt.where(AuthToken.purpose == purpose)

    result = await db.execute(stmt.execution_options(synchronize_session=False))
    await db.commit()
    return result.rowcount


async def delete_expired(db: AsyncSession, now: datetime) -> int:
    """
    Delete every token whose expiry is at or before now.

    Returns:
        Number of tokens deleted
    """
    result = await db.execute(
        delete(AuthToken)
        .where(AuthToken.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
