"""
Email Service using Resend

Outbound email for the account lifecycle: email verification links and
password reset links.

The Notifier contract is a single coroutine, send(to_email, subject, html),
returning True on success and False when delivery failed. Delivery failures
are logged here and never raised, so callers can treat them as non-fatal.
"""

import asyncio
import logging
from html import escape
from typing import Protocol
from urllib.parse import urlencode

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can deliver an HTML email."""

    async def send(self, to_email: str, subject: str, html_content: str) -> bool: ...


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    resend.api_key = settings.resend_api_key

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e.__class__.__name__}: {e}")
        return False


class ResendNotifier:
    """Notifier backed by the Resend API."""

    async def send(self, to_email: str, subject: str, html_content: str) -> bool:
        return await send_email(to_email, subject, html_content)


def build_link(path: str, token: str) -> str:
    """Build a frontend link carrying a token as a query parameter."""
    return f"{settings.frontend_url.rstrip('/')}{path}?{urlencode({'token': token})}"


_BASE_STYLE = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1a365d; margin-bottom: 24px; }
            .button { display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def render_verification_email(first_name: str, link: str, ttl_hours: int) -> str:
    """HTML body for the email-verification message."""
    safe_name = escape(first_name)
    safe_link = escape(link, quote=True)

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Verify Your Email</h1>

            <p>Hello {safe_name},</p>

            <p>Welcome to School Portal! Please confirm your email address to activate your account.</p>

            <a href="{safe_link}" class="button">Verify Email</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{safe_link}</p>

            <p><strong>This link expires in {ttl_hours} hours.</strong></p>

            <div class="footer">
                <p>If you didn't create an account, you can safely ignore this email.</p>
                <p>School Portal</p>
            </div>
        </div>
    </body>
    </html>
    """


def render_password_reset_email(first_name: str, link: str, ttl_minutes: int) -> str:
    """HTML body for the password-reset message."""
    safe_name = escape(first_name)
    safe_link = escape(link, quote=True)

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Reset Your Password</h1>

            <p>Hello {safe_name},</p>

            <p>We received a request to reset the password for your School Portal account.</p>

            <a href="{safe_link}" class="button">Choose a New Password</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{safe_link}</p>

            <p><strong>This link expires in {ttl_minutes} minutes and can only be used once.</strong></p>

            <div class="footer">
                <p>If you didn't request a password reset, you can ignore this email. Your password will not change.</p>
                <p>School Portal</p>
            </div>
        </div>
    </body>
    </html>
    """


__all__ = [
    "Notifier",
    "ResendNotifier",
    "build_link",
    "render_password_reset_email",
    "render_verification_email",
    "send_email",
]
