"""
Database Configuration

Async SQLAlchemy engine, session factory and declarative base.

init_db() is safe to call from several startup paths at once: the first
caller does the work under a lock and later callers return immediately.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

_init_lock = asyncio.Lock()
_initialized = False


class StoreUnavailableError(Exception):
    """Raised when the backing store cannot be reached."""


@contextmanager
def store_errors() -> Iterator[None]:
    """
    Translate driver-level connectivity failures into StoreUnavailableError.

    Usage:
        with store_errors():
            await repository.something(db, ...)
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Database unavailable: {e.__class__.__name__}")
        raise StoreUnavailableError("The data store is temporarily unavailable.") from e


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a database session.

    Repositories commit their own writes; anything left uncommitted when the
    request fails is rolled back here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Verify database connectivity once per process.

    In development the tables are created directly from the models; other
    environments rely on Alembic migrations.
    """
    global _initialized

    if _initialized:
        return

    async with _init_lock:
        if _initialized:
            return

        # Import models so they are registered on Base.metadata
        from app.modules.tokens import models as _token_models  # noqa: F401
        from app.modules.users import models as _user_models  # noqa: F401

        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if settings.is_development:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Development mode: ensured database tables exist")

        _initialized = True


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    global _initialized
    await engine.dispose()
    _initialized = False
