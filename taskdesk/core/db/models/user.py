from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskdesk.core.db.models.base import BaseModel

if TYPE_CHECKING:
    from taskdesk.core.db.models.otp import OTPRecord


class User(BaseModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Flips to True once, on OTP confirmation; SSO accounts start True
    verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    otp_records: Mapped[list["OTPRecord"]] = relationship(
        "OTPRecord",
        back_populates="user",
        cascade="all, delete-orphan",
    )


__all__ = ["User"]
