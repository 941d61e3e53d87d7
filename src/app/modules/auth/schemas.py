"""Authentication schemas."""

import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import BCRYPT_MAX_PASSWORD_BYTES

PASSWORD_MIN_LENGTH = 8
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def check_password_policy(password: str) -> list[str]:
    """
    Check a password against the account password policy.

    Returns:
        Human-readable violations; empty when the password is acceptable
    """
    problems = []

    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        problems.append(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes long")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one digit")

    return problems


def _validate_password(value: str) -> str:
    problems = check_password_policy(value)
    if problems:
        raise ValueError("; ".join(problems))
    return value


class SignUpRequest(BaseModel):
    """Request body for POST /auth/signup."""

    first_name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    last_name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr
    password: str

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _validate_password(value)


class SignUpResponse(BaseModel):
    """Response after sign-up."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    verification_sent: bool
    message: str


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class IdentityResponse(BaseModel):
    """Authenticated identity. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    token: str = Field(..., min_length=1)


class ResendVerificationRequest(BaseModel):
    """Request body for POST /auth/resend-verification."""

    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """
    Request body for POST /auth/reset-password.

    The password policy is enforced by the service so that a rejected
    password leaves the token untouched.
    """

    token: str = Field(..., min_length=1)
    new_password: str


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    email: EmailStr
    current_password: str = Field(..., min_length=1)
    new_password: str


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str
