"""Authentication module - credential checks and the account lifecycle."""

from app.modules.auth.errors import (
    AccountDisabledError,
    AuthServiceError,
    DuplicateEmailError,
    FieldError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidOrExpiredTokenError,
    NotVerifiedError,
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
]
