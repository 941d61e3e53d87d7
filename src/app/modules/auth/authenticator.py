"""
Credential Authenticator

Checks an email/password pair against stored credentials.

An unknown email and a wrong password are indistinguishable to the caller:
both raise InvalidCredentialsError with the same message, and the unknown
email path still pays for one bcrypt verification. The more specific
NotVerifiedError and AccountDisabledError are raised only after the password
has been confirmed.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import PasswordHasher
from app.modules.auth.errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    NotVerifiedError,
)
from app.modules.users.repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Minimal authenticated identity."""

    id: str
    email: str


def mask_email(email: str) -> str:
    """Mask the local part for logging: jane@example.com -> j***@example.com."""
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}" if domain else "***"


class CredentialAuthenticator:
    """Read-only credential check used at login."""

    def __init__(self, hasher: PasswordHasher):
        self.hasher = hasher

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> Identity:
        """
        Authenticate a user.

        Returns:
            Identity of the user

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            NotVerifiedError: Correct password, email not yet verified
            AccountDisabledError: Correct password, account deactivated
        """
        normalized = normalize_email(email)
        user = await UserRepository.get_by_email(db, normalized)

        if user is None:
            await self.hasher.verify_dummy(password)
            logger.warning(f"Login attempt for unknown email: {mask_email(normalized)}")
            raise InvalidCredentialsError()

        if not await self.hasher.verify(password, user.password_hash):
            logger.warning(f"Invalid password for user: {user.id}")
            raise InvalidCredentialsError()

        if not user.is_verified:
            logger.info(f"Login blocked for unverified user: {user.id}")
            raise NotVerifiedError()

        if not user.is_active:
            logger.warning(f"Login attempt for inactive account: {user.id}")
            raise AccountDisabledError()

        return Identity(id=str(user.id), email=user.email)
