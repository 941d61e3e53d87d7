"""
Authentication Service Errors

Typed failures raised by the account lifecycle and credential checks. Each
carries a stable error_code and the HTTP status the router responds with.

Messages are safe to show to clients: they never include a raw token, a
password, or whether a given email is registered (except for sign-up, where
the conflict is the answer).
"""

from dataclasses import dataclass

from app.core.database import StoreUnavailableError


class AuthServiceError(Exception):
    """Base exception for authentication service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class FieldError:
    """A single rejected input field."""

    field: str
    message: str


class InvalidInputError(AuthServiceError):
    """Raised when input fails validation (e.g. the password policy)."""

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        super().__init__(
            message="; ".join(f"{e.field}: {e.message}" for e in errors) or "Invalid input.",
            error_code="VALIDATION_ERROR",
            status_code=422,
        )


class DuplicateEmailError(AuthServiceError):
    """Raised when signing up with an email that is already registered."""

    def __init__(self):
        super().__init__(
            message="An account with this email already exists.",
            error_code="DUPLICATE_EMAIL",
            status_code=409,
        )


class InvalidCredentialsError(AuthServiceError):
    """Raised for an unknown email or a wrong password (indistinguishable)."""

    def __init__(self):
        super().__init__(
            message="Invalid email or password.",
            error_code="INVALID_CREDENTIALS",
            status_code=401,
        )


class NotVerifiedError(AuthServiceError):
    """Raised when the password is correct but the email is unverified."""

    def __init__(self):
        super().__init__(
            message="Please verify your email address before logging in.",
            error_code="EMAIL_NOT_VERIFIED",
            status_code=403,
        )


class AccountDisabledError(AuthServiceError):
    """Raised when the password is correct but the account is deactivated."""

    def __init__(self):
        super().__init__(
            message="Your account has been deactivated.",
            error_code="ACCOUNT_INACTIVE",
            status_code=403,
        )


class InvalidOrExpiredTokenError(AuthServiceError):
    """Raised when a verification or reset token cannot be used."""

    def __init__(self, message: str = "This link is invalid or has expired."):
        super().__init__(
            message=message,
            error_code="INVALID_OR_EXPIRED_TOKEN",
            status_code=400,
        )


__all__ = [
    "AccountDisabledError",
    "AuthServiceError",
    "DuplicateEmailError",
    "FieldError",
    "InvalidCredentialsError",
    "InvalidInputError",
    "InvalidOrExpiredTokenError",
    "NotVerifiedError",
    "StoreUnavailableError",
]
