"""
Shared fixtures.

Tests run against a file-backed SQLite database (one per test) so that
separate sessions use separate connections, as they do in production.
"""

import os

# Must be set before app settings are first imported
os.environ.setdefault("PYTHON_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.pop("RESEND_API_KEY", None)

import re  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.database import Base  # noqa: E402
from app.core.rate_limit import reset_memory_store  # noqa: E402
from app.core.security import PasswordHasher  # noqa: E402
from app.modules.auth.service import AccountLifecycleCoordinator  # noqa: E402
from app.modules.tokens import models as _token_models  # noqa: E402, F401
from app.modules.tokens.service import TokenStore  # noqa: E402
from app.modules.users.models import User  # noqa: E402
from app.modules.users.repository import UserRepository  # noqa: E402

TEST_PASSWORD = "Passw0rd!"

_TOKEN_IN_LINK = re.compile(r"token=([A-Za-z0-9_\-]+)")


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notifier that records messages instead of sending them."""

    def __init__(self):
        self.sent: list[dict[str, str]] = []
        self.fail = False

    async def send(self, to_email: str, subject: str, html_content: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True

    def last_token(self) -> str:
        """Extract the raw token from the most recent email's link."""
        match = _TOKEN_IN_LINK.search(self.sent[-1]["html"])
        assert match, "no token link in the last email"
        return match.group(1)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with all tables."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def token_store(clock) -> TokenStore:
    return TokenStore(clock=clock)


@pytest.fixture
def hasher() -> PasswordHasher:
    """Low-cost hasher to keep tests fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def coordinator(hasher, token_store, notifier) -> AccountLifecycleCoordinator:
    return AccountLifecycleCoordinator(
        hasher=hasher,
        token_store=token_store,
        notifier=notifier,
        verification_ttl=timedelta(hours=24),
        reset_ttl=timedelta(hours=1),
    )


@pytest.fixture
def create_user(db, hasher):
    """Factory for users stored directly through the repository."""

    async def _create(
        email: str = "jane@example.com",
        password: str = TEST_PASSWORD,
        *,
        is_verified: bool = True,
        is_active: bool = True,
    ) -> User:
        return await UserRepository.create(
            db,
            email=email,
            password_hash=await hasher.hash(password),
            first_name="Jane",
            last_name="Doe",
            is_verified=is_verified,
            is_active=is_active,
        )

    return _create


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Isolate the in-memory rate limiter between tests."""
    reset_memory_store()
    yield
    reset_memory_store()
