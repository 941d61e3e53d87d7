"""
Account Lifecycle Service

Orchestrates the account flows that involve credentials and tokens:

1. Sign-up: create the account, issue a verification token, email the link
2. Email verification: redeem the token and mark the account verified
3. Password reset: issue a reset token for known active accounts, then
   redeem it to set a new password
4. Resend verification, login, change password, deactivation

Security considerations:
- Passwords are stored only as bcrypt hashes
- Tokens are single-use and stored hashed (see TokenStore)
- request_password_reset and resend_verification behave identically for
  unknown and known emails, so they cannot be used to enumerate accounts
- Email delivery failures are logged and never undo committed state
- Raw tokens and passwords are never logged
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import store_errors
from app.core.email import (
    Notifier,
    ResendNotifier,
    build_link,
    render_password_reset_email,
    render_verification_email,
)
from app.core.security import PasswordHasher
from app.modules.auth.authenticator import CredentialAuthenticator, Identity, mask_email
from app.modules.auth.errors import FieldError, InvalidInputError, InvalidOrExpiredTokenError
from app.modules.auth.schemas import NAME_MAX_LENGTH, NAME_MIN_LENGTH, check_password_policy
from app.modules.tokens.models import TokenPurpose
from app.modules.tokens.service import TokenStore
from app.modules.users.repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)

VERIFY_EMAIL_PATH = "/verify-email"
RESET_PASSWORD_PATH = "/reset-password"


@dataclass(frozen=True)
class SignUpResult:
    """Outcome of a sign-up."""

    user_id: str
    email: str
    verification_sent: bool


def _password_errors(password: str, field: str = "password") -> list[FieldError]:
    return [FieldError(field=field, message=problem) for problem in check_password_policy(password)]


def _name_errors(field: str, value: str) -> list[FieldError]:
    if NAME_MIN_LENGTH <= len(value.strip()) <= NAME_MAX_LENGTH:
        return []
    return [
        FieldError(
            field=field,
            message=f"Must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters long",
        )
    ]


class AccountLifecycleCoordinator:
    """
    Composes the password hasher, token store, authenticator and notifier
    into the account lifecycle flows.
    """

    def __init__(
        self,
        hasher: PasswordHasher | None = None,
        token_store: TokenStore | None = None,
        notifier: Notifier | None = None,
        authenticator: CredentialAuthenticator | None = None,
        verification_ttl: timedelta | None = None,
        reset_ttl: timedelta | None = None,
    ):
        self.hasher = hasher or PasswordHasher()
        self.token_store = token_store or TokenStore()
        self.notifier = notifier or ResendNotifier()
        self.authenticator = authenticator or CredentialAuthenticator(self.hasher)
        self.verification_ttl = verification_ttl or timedelta(
            hours=settings.verification_token_ttl_hours
        )
        self.reset_ttl = reset_ttl or timedelta(minutes=settings.password_reset_token_ttl_minutes)

    async def sign_up(
        self,
        db: AsyncSession,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> SignUpResult:
        """
        Create an unverified account and send the verification email.

        Raises:
            InvalidInputError: If the password or names violate policy
            DuplicateEmailError: If the email is already registered
        """
        errors = [
            *_name_errors("first_name", first_name),
            *_name_errors("last_name", last_name),
            *_password_errors(password),
        ]
        if errors:
            raise InvalidInputError(errors)

        password_hash = await self.hasher.hash(password)

        with store_errors():
            user = await UserRepository.create(
                db,
                email=email,
                password_hash=password_hash,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
            )
            user_id, user_email = str(user.id), user.email
            sent = await self._send_verification(db, user_id, user_email, user.first_name)

        return SignUpResult(user_id=user_id, email=user_email, verification_sent=sent)

    async def verify_email(self, db: AsyncSession, token: str) -> None:
        """
        Redeem a verification token and mark the account verified.

        Raises:
            InvalidOrExpiredTokenError: Unknown, used, expired or mismatched token
        """
        with store_errors():
            subject_id = await self.token_store.consume(db, token, TokenPurpose.VERIFY)
            if subject_id is None:
                raise InvalidOrExpiredTokenError()

            if not await UserRepository.set_verified(db, subject_id):
                logger.warning(f"Verification token subject {subject_id} no longer exists")
                raise InvalidOrExpiredTokenError()

        logger.info(f"Email verified for user {subject_id}")

    async def request_password_reset(
        self,
        db: AsyncSession,
        email: str,
        background_tasks: BackgroundTasks | None = None,
    ) -> None:
        """
        Start a password reset.

        Always succeeds. Only known, active accounts receive a reset link.
        When background_tasks is given, the email is sent after the response
        so known and unknown addresses answer in comparable time.
        """
        with store_errors():
            user = await UserRepository.get_by_email(db, email)
            if user is None or not user.is_active:
                logger.info(
                    f"Password reset skipped for {mask_email(normalize_email(email))}"
                )
                return

            user_id, user_email, first_name = user.id, user.email, user.first_name
            token = await self.token_store.issue(db, user_id, TokenPurpose.RESET, self.reset_ttl)

        link = build_link(RESET_PASSWORD_PATH, token)
        html = render_password_reset_email(
            first_name, link, int(self.reset_ttl.total_seconds() // 60)
        )
        subject = "Reset your School Portal password"
        if background_tasks is not None:
            background_tasks.add_task(self._notify, user_id, user_email, subject, html)
            return
        await self._notify(user_id, user_email, subject, html)

    async def complete_password_reset(
        self,
        db: AsyncSession,
        token: str,
        new_password: str,
    ) -> None:
        """
        Redeem a reset token and set a new password.

        The password is validated and hashed before the token is touched, so a
        rejected or abandoned request leaves the link usable.

        Raises:
            InvalidInputError: If the new password violates policy
            InvalidOrExpiredTokenError: Unknown, used, expired or mismatched token
        """
        errors = _password_errors(new_password, field="new_password")
        if errors:
            raise InvalidInputError(errors)

        password_hash = await self.hasher.hash(new_password)

        with store_errors():
            subject_id = await self.token_store.consume(db, token, TokenPurpose.RESET)
            if subject_id is None:
                raise InvalidOrExpiredTokenError()

            if not await UserRepository.update_password(db, subject_id, password_hash):
                logger.warning(f"Reset token subject {subject_id} no longer exists")
                raise InvalidOrExpiredTokenError()

        logger.info(f"Password reset completed for user {subject_id}")

    async def resend_verification(self, db: AsyncSession, email: str) -> None:
        """
        Send a fresh verification link, superseding the previous one.

        Always succeeds. Only existing, unverified, active accounts get an email.
        """
        with store_errors():
            user = await UserRepository.get_by_email(db, email)
            if user is None or user.is_verified or not user.is_active:
                logger.info(
                    f"Verification resend skipped for {mask_email(normalize_email(email))}"
                )
                return

            await self._send_verification(db, user.id, user.email, user.first_name)

    async def login(self, db: AsyncSession, email: str, password: str) -> Identity:
        """
        Authenticate a user.

        Raises:
            InvalidCredentialsError, NotVerifiedError, AccountDisabledError
        """
        with store_errors():
            return await self.authenticator.authenticate(db, email, password)

    async def change_password(
        self,
        db: AsyncSession,
        *,
        email: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Change a password after re-checking the current one.

        Outstanding reset links are revoked so they cannot undo the change.

        Raises:
            InvalidCredentialsError, NotVerifiedError, AccountDisabledError
            InvalidInputError: If the new password violates policy
        """
        with store_errors():
            identity = await self.authenticator.authenticate(db, email, current_password)

            errors = _password_errors(new_password, field="new_password")
            if errors:
                raise InvalidInputError(errors)

            password_hash = await self.hasher.hash(new_password)
            await UserRepository.update_password(db, identity.id, password_hash)
            await self.token_store.revoke_all(db, identity.id, TokenPurpose.RESET)

        logger.info(f"Password changed for user {identity.id}")

    async def deactivate_account(self, db: AsyncSession, user_id: str) -> bool:
        """
        Deactivate an account and revoke all of its outstanding tokens.

        Returns:
            False if no such user exists
        """
        with store_errors():
            if not await UserRepository.set_active(db, user_id, False):
                return False
            revoked = await self.token_store.revoke_all(db, user_id)

        logger.info(f"Deactivated user {user_id} ({revoked} token(s) revoked)")
        return True

    async def _send_verification(
        self, db: AsyncSession, user_id: str, email: str, first_name: str
    ) -> bool:
        token = await self.token_store.issue(
            db, user_id, TokenPurpose.VERIFY, self.verification_ttl
        )
        link = build_link(VERIFY_EMAIL_PATH, token)
        html = render_verification_email(
            first_name, link, int(self.verification_ttl.total_seconds() // 3600)
        )
        return await self._notify(user_id, email, "Verify your School Portal email", html)

    async def _notify(self, user_id: str, email: str, subject: str, html: str) -> bool:
        """Send an email; failures are logged and reported, never raised."""
        try:
            sent = await self.notifier.send(email, subject, html)
        except Exception as e:
            logger.error(f"Exception sending email to user {user_id}: {e.__class__.__name__}")
            return False

        if not sent:
            logger.error(f"Failed to send email to user {user_id}")
        return sent
