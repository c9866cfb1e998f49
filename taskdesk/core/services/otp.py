"""
OTP Service for issuing, resending and verifying one-time signup codes.

Codes are 6 random digits, stored only as HMAC-SHA256 hashes with a
10-minute expiry, and delivered by email. Every operation runs inside the
caller's transaction (``commit_self=False`` by default), so a failed email
delivery rolls back the record that was just written.

Example usage:
    from taskdesk.core.services.otp import OTPService

    async with session.begin():
        await OTPService.check_rate_limit(email, "otp_verify")
        await OTPService.verify(session, user, OTPPurpose.SIGNUP, "123456")
"""

from datetime import timedelta
import math

from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.config import otp_logger, settings
from taskdesk.core.db.crud import otp_record_db, user_db
from taskdesk.core.db.models import OTPRecord, User
from taskdesk.core.enums import OTPPurpose
from taskdesk.core.exceptions.types import (
    OTPAlreadyUsedException,
    OTPExpiredException,
    OTPInvalidException,
    OTPNotFoundException,
    OTPStillValidException,
    RateLimitExceededException,
)
from taskdesk.core.services.email_manager import EmailManagerService
from taskdesk.core.services.rate_limit import RateLimiter, format_rate_limit_key
from taskdesk.core.utils import (
    ensure_utc,
    format_duration,
    generate_otp_code,
    hmac_hash_otp,
    hmac_verify_otp,
    mask_otp,
    utc_now,
)


__all__ = ["OTPService"]


class OTPService:
    """
    One-time code engine.

    Attributes:
        _limiter: Rate limiter shared by every OTP endpoint. Replaced by ``init``.

    Example:
        >>> OTPService.init(limiter=RateLimiter(backend="memory"))
        >>> code = await OTPService.issue(session, user, OTPPurpose.SIGNUP)
    """

    _limiter: RateLimiter | None = None

    # =========================================================================
    # Initialization
    # =========================================================================

    @classmethod
    def init(cls, limiter: RateLimiter | None = None) -> None:
        """
        Install the rate limiter used by ``check_rate_limit``.

        Args:
            limiter: A ready limiter. Defaults to one built from
                settings.RATE_LIMIT_BACKEND.
        """
        cls._limiter = limiter or RateLimiter()
        otp_logger.info("OTPService initialized")

    @classmethod
    def get_limiter(cls) -> RateLimiter:
        if cls._limiter is None:
            cls._limiter = RateLimiter()
        return cls._limiter

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _new_code(cls) -> tuple[str, str]:
        code = generate_otp_code(settings.OTP_LENGTH)
        return code, hmac_hash_otp(code, settings.OTP_HMAC_SECRET)

    @classmethod
    def _new_expiry(cls):
        return utc_now() + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)

    @classmethod
    def is_expired(cls, record: OTPRecord) -> bool:
        return utc_now() > ensure_utc(record.expires_at)

    @classmethod
    async def _deliver(cls, user: User, code: str, purpose: OTPPurpose) -> None:
        await EmailManagerService.send_otp_email(
            email=user.email,
            otp_code=code,
            purpose=purpose,
            user_name=user.first_name,
        )
        otp_logger.info(
            f"OTP {mask_otp(code)} sent: user={user.id}, purpose={purpose.value}"
        )

    # =========================================================================
    # Rate limiting
    # =========================================================================

    @classmethod
    async def check_rate_limit(cls, email: str, action: str) -> None:
        """
        Count one request for (email, action) against the sliding window.

        Args:
            email: The address the request is about; compared case-insensitively.
            action: Endpoint or operation name (e.g. "otp_resend").

        Raises:
            RateLimitExceededException: If the window is already full.
        """
        key = format_rate_limit_key("email", email.strip().lower(), action)
        result = await cls.get_limiter().check(
            key,
            settings.OTP_RATE_LIMIT_REQUESTS,
            settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
        )
        if not result.allowed:
            raise RateLimitExceededException(retry_after=result.retry_after)

    # =========================================================================
    # Issue / resend / verify
    # =========================================================================

    @classmethod
    async def issue(
        cls,
        session: AsyncSession,
        user: User,
        purpose: OTPPurpose,
        commit_self: bool = False,
    ) -> str:
        """
        Create a fresh code for the user and email it.

        Args:
            session: The database session.
            user: Recipient of the code.
            purpose: Why the code is issued.
            commit_self: If True, commits after delivery. Default False.

        Returns:
            str: The plaintext code. It is never persisted.

        Raises:
            EmailDeliveryException: If the email could not be delivered.
        """
        code, code_hash = cls._new_code()

        await otp_record_db.create(
            session=session,
            data={
                "user_id": user.id,
                "purpose": purpose,
                "code_hash": code_hash,
                "expires_at": cls._new_expiry(),
                "consumed": False,
            },
            commit_self=False,
        )

        await cls._deliver(user, code, purpose)

        if commit_self:
            await session.commit()
        return code

    @classmethod
    async def resend(
        cls,
        session: AsyncSession,
        user: User,
        purpose: OTPPurpose = OTPPurpose.SIGNUP,
        commit_self: bool = False,
    ) -> str:
        """
        Replace an expired code with a new one and email it.

        The latest unconsumed record is rewritten in place; a record is only
        created when the user has none.

        Args:
            session: The database session.
            user: Recipient of the code.
            purpose: Purpose of the record being replaced.
            commit_self: If True, commits after delivery. Default False.

        Returns:
            str: The new plaintext code.

        Raises:
            OTPStillValidException: If the current code has not expired yet.
            EmailDeliveryException: If the email could not be delivered.
        """
        record = await otp_record_db.get_latest_unconsumed(session, user.id, purpose)

        if record is not None and not cls.is_expired(record):
            remaining = ensure_utc(record.expires_at) - utc_now()
            remaining_ms = remaining.total_seconds() * 1000
            otp_logger.info(
                f"Resend refused, code still live: user={user.id}, remaining={format_duration(remaining_ms)}"
            )
            raise OTPStillValidException(
                message=f"OTP not expired yet. Try again in {format_duration(remaining_ms)}",
                retry_after=max(1, math.ceil(remaining.total_seconds())),
            )

        code, code_hash = cls._new_code()
        expires_at = cls._new_expiry()

        if record is not None:
            await otp_record_db.overwrite(
                session, record, code_hash, expires_at, commit_self=False
            )
        else:
            await otp_record_db.create(
                session=session,
                data={
                    "user_id": user.id,
                    "purpose": purpose,
                    "code_hash": code_hash,
                    "expires_at": expires_at,
                    "consumed": False,
                },
                commit_self=False,
            )

        await cls._deliver(user, code, purpose)

        if commit_self:
            await session.commit()
        return code

    @classmethod
    async def verify(
        cls,
        session: AsyncSession,
        user: User,
        purpose: OTPPurpose,
        code: str,
        commit_self: bool = False,
    ) -> None:
        """
        Check a submitted code and, on success, mark the user verified.

        The record is consumed with a conditional update so that of two
        concurrent verifications of the same code exactly one succeeds.

        Args:
            session: The database session.
            user: The user the code was issued to.
            purpose: Purpose of the code.
            code: The submitted code.
            commit_self: If True, commits the consume and the verified flag. Default False.

        Raises:
            OTPAlreadyUsedException: If the latest code was already consumed.
            OTPNotFoundException: If the user has no code at all.
            OTPExpiredException: If the code is past its expiry.
            OTPInvalidException: If the code does not match.
        """
        record = await otp_record_db.get_latest_unconsumed(session, user.id, purpose)

        if record is None:
            if await otp_record_db.get_latest(session, user.id, purpose) is not None:
                otp_logger.warning(f"OTP verify on consumed code: user={user.id}")
                raise OTPAlreadyUsedException()
            otp_logger.warning(f"OTP verify with no code on file: user={user.id}")
            raise OTPNotFoundException()

        if cls.is_expired(record):
            otp_logger.warning(f"OTP verify on expired code: user={user.id}")
            raise OTPExpiredException()

        if not hmac_verify_otp(code, record.code_hash, settings.OTP_HMAC_SECRET):
            otp_logger.warning(f"OTP verify mismatch: user={user.id}")
            raise OTPInvalidException()

        if not await otp_record_db.consume(session, record.id, commit_self=False):
            otp_logger.warning(f"OTP consumed concurrently: user={user.id}")
            raise OTPAlreadyUsedException()

        await user_db.update(session, user.id, {"verified": True}, commit_self=False)

        if commit_self:
            await session.commit()

        otp_logger.info(f"OTP verified: user={user.id}, purpose={purpose.value}")
