"""
Authentication Router

Public endpoints for the account lifecycle.

Endpoints:
- POST /auth/signup - Create an account and send a verification email
- POST /auth/verify-email - Redeem an email verification token
- POST /auth/resend-verification - Send a fresh verification link
- POST /auth/forgot-password - Request a password reset link
- POST /auth/reset-password - Redeem a reset token and set a new password
- POST /auth/login - Check credentials and return the identity
- POST /auth/change-password - Change password with the current one

Security:
- Rate limiting on signup, login, forgot-password and resend-verification
- forgot-password and resend-verification always answer the same way
- Service errors map to {"error": code, "message": text} details
"""

import logging
from functools import lru_cache
from typing import NoReturn

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import StoreUnavailableError, get_db
from app.core.rate_limit import rate_limit
from app.modules.auth.errors import AuthServiceError, InvalidInputError
from app.modules.auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SignUpRequest,
    SignUpResponse,
    VerifyEmailRequest,
)
from app.modules.auth.service import AccountLifecycleCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()

# Same answer whether or not the email is registered
FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a reset link has been sent."
RESEND_VERIFICATION_MESSAGE = (
    "If this email belongs to an unverified account, a new verification link has been sent."
)


@lru_cache
def get_account_service() -> AccountLifecycleCoordinator:
    """Dependency returning the process-wide account service."""
    return AccountLifecycleCoordinator()


def _handle_service_error(e: Exception, action: str) -> NoReturn:
    """Translate a service failure into an HTTPException."""
    if isinstance(e, InvalidInputError):
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
                "fields": [{"field": err.field, "message": err.message} for err in e.errors],
            },
        ) from e

    if isinstance(e, AuthServiceError):
        logger.info(f"{action} rejected: {e.error_code}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e

    if isinstance(e, StoreUnavailableError):
        logger.error(f"{action} failed: data store unavailable")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "SERVICE_UNAVAILABLE",
                "message": "The service is temporarily unavailable. Please try again later.",
            },
        ) from e

    logger.exception(f"Unexpected error during {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    ) from e


@router.post(
    "/signup",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign Up",
)
@rate_limit()
async def signup(
    request: Request,
    data: SignUpRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> SignUpResponse:
    """
    Create an unverified account and email a verification link.

    Raises:
        HTTPException 409: Email already registered
        HTTPException 422: Password or names violate policy
    """
    try:
        result = await service.sign_up(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
        )
    except Exception as e:
        _handle_service_error(e, "Sign-up")

    message = (
        "Account created. Please check your email to verify your address."
        if result.verification_sent
        else "Account created, but the verification email could not be sent. "
        "Please request a new link."
    )
    return SignUpResponse(
        id=result.user_id,
        email=result.email,
        verification_sent=result.verification_sent,
        message=message,
    )


@router.post("/verify-email", response_model=MessageResponse, summary="Verify Email")
async def verify_email(
    data: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> MessageResponse:
    """
    Redeem an email verification token.

    Raises:
        HTTPException 400: Token invalid, used or expired
    """
    try:
        await service.verify_email(db, data.token)
    except Exception as e:
        _handle_service_error(e, "Email verification")

    return MessageResponse(message="Email verified. You can now log in.")


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    summary="Resend Verification Email",
)
@rate_limit()
async def resend_verification(
    request: Request,
    data: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> MessageResponse:
    """Send a fresh verification link. Always answers the same way."""
    try:
        await service.resend_verification(db, data.email)
    except Exception as e:
        _handle_service_error(e, "Resend verification")

    return MessageResponse(message=RESEND_VERIFICATION_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse, summary="Forgot Password")
@rate_limit()
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> MessageResponse:
    """
    Request a password reset link. Always answers the same way.

    The email is sent after the response, so response time does not depend
    on whether the account exists.
    """
    try:
        await service.request_password_reset(db, data.email, background_tasks)
    except Exception as e:
        _handle_service_error(e, "Password reset request")

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse, summary="Reset Password")
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> MessageResponse:
    """
    Redeem a reset token and set a new password.

    Raises:
        HTTPException 400: Token invalid, used or expired
        HTTPException 422: New password violates policy (token left usable)
    """
    try:
        await service.complete_password_reset(db, data.token, data.new_password)
    except Exception as e:
        _handle_service_error(e, "Password reset")

    return MessageResponse(message="Password has been reset. You can now log in.")


@router.post("/login", response_model=IdentityResponse, summary="Log In")
@rate_limit()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> IdentityResponse:
    """
    Authenticate a user.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Email not verified, or account inactive
    """
    try:
        identity = await service.login(db, credentials.email, credentials.password)
    except Exception as e:
        _handle_service_error(e, "Login")

    return IdentityResponse(id=identity.id, email=identity.email)


@router.post("/change-password", response_model=MessageResponse, summary="Change Password")
@rate_limit()
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    service: AccountLifecycleCoordinator = Depends(get_account_service),
) -> MessageResponse:
    """
    Change a password given the current one.

    Raises:
        HTTPException 401: Current password wrong
        HTTPException 422: New password violates policy
    """
    try:
        await service.change_password(
            db,
            email=data.email,
            current_password=data.current_password,
            new_password=data.new_password,
        )
    except Exception as e:
        _handle_service_error(e, "Password change")

    return MessageResponse(message="Password changed.")
