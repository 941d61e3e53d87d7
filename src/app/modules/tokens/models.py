"""
Auth Token Models

Single-use, time-bounded tokens for email verification and password reset.
Only the SHA-256 hash of a token is stored; the raw value exists solely in
the link sent to the user.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class TokenPurpose(str, enum.Enum):
    """What a token authorizes."""

    VERIFY = "verify"
    RESET = "reset"


class AuthToken(Base):
    """
    An outstanding token for a (subject, purpose) pair.

    At most one row exists per pair: issuing again replaces the row, so the
    previous token stops working. subject_id is a weak reference to a user
    id and carries no foreign key.
    """

    __tablename__ = "auth_tokens"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    purpose: Mapped[TokenPurpose] = mapped_column(
        Enum(
            TokenPurpose,
            name="token_purpose",
            values_callable=lambda purposes: [p.value for p in purposes],
        ),
        nullable=False,
    )

    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("subject_id", "purpose", name="uq_auth_tokens_subject_purpose"),
        Index("ix_auth_tokens_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<AuthToken(subject_id={self.subject_id}, purpose={self.purpose.value})>"
