"""
User Repository

Database operations for user accounts.

Emails are normalized (stripped, lower-cased) on the way in, both when
storing and when looking up, so lookups are case-insensitive.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.auth.errors import DuplicateEmailError
from app.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.STUDENT,
        is_active: bool = True,
        is_verified: bool = False,
    ) -> User:
        """
        Create a new user record.

        Args:
            db: Database session
            email: User's email address (unique, normalized before storage)
            password_hash: Hashed password
            first_name: User's first name
            last_name: User's last name
            role: User's role
            is_active: Whether user is active
            is_verified: Whether email is verified

        Returns:
            Created User instance

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
            is_verified=is_verified,
        )

        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise DuplicateEmailError() from e

        await db.refresh(user)

        logger.info(f"Created user: {user.id} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str | UUID) -> User | None:
        """
        Get a user by ID.

        Args:
            db: Database session
            user_id: User UUID

        Returns:
            User instance or None if not found
        """
        user_id_str = str(user_id)
        result = await db.execute(select(User).where(User.id == user_id_str))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get a user by email address (case-insensitive).

        Args:
            db: Database session
            email: Email address

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    @staticmethod
    async def update_password(db: AsyncSession, user_id: str, password_hash: str) -> bool:
        """
        Replace a user's password hash.

        Returns:
            True if a user row was updated
        """
        return await UserRepository._update(db, user_id, password_hash=password_hash)

    @staticmethod
    async def set_verified(db: AsyncSession, user_id: str) -> bool:
        """Mark a user's email as verified. Idempotent."""
        return await UserRepository._update(db, user_id, is_verified=True)

    @staticmethod
    async def set_active(db: AsyncSession, user_id: str, is_active: bool) -> bool:
        """Activate or deactivate a user account."""
        return await UserRepository._update(db, user_id, is_active=is_active)

    @staticmethod
    async def _update(db: AsyncSession, user_id: str, **values: object) -> bool:
        result = await db.execute(
            update(User)
            .where(User.id == str(user_id))
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        await db.commit()
        return result.rowcount > 0
