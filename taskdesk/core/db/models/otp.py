"""
OTP record model for one-time signup verification codes.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskdesk.core.db.models.base import BaseModel
from taskdesk.core.db.models.user import User
from taskdesk.core.enums import OTPPurpose


class OTPRecord(BaseModel):
    """
    A hashed one-time code issued to a user.

    Codes are stored as HMAC-SHA256 hashes; the plaintext only exists in the
    outbound email. A resend rewrites ``code_hash`` and ``expires_at`` on the
    latest unconsumed record instead of adding a row.

    Attributes:
        user_id: Owner of the code.
        purpose: Why the code was issued (signup, resend).
        code_hash: HMAC-SHA256 hex digest of the code.
        expires_at: When the code stops being accepted.
        consumed: Set once by a successful verification.
        consumed_at: When the code was consumed.
    """

    __tablename__ = "otp_records"
    __table_args__ = (
        Index("ix_otp_records_user_purpose_consumed", "user_id", "purpose", "consumed"),
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    purpose: Mapped[OTPPurpose] = mapped_column(
        Enum(OTPPurpose, native_enum=False, name="otp_purpose"),
        nullable=False,
    )

    code_hash: Mapped[str] = mapped_column(
        String(64),  # SHA256 hex digest is 64 characters
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    consumed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    user: Mapped[User] = relationship(
        "User",
        back_populates="otp_records",
    )


__all__ = ["OTPRecord"]
