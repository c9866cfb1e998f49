"""
Utility functions for the application.

- Timezone-aware clock helpers
- Secure password hashing using bcrypt
- JWT token signing
- HMAC-based OTP generation, hashing and verification
- Human-readable durations and random placeholder passwords
"""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import secrets
import string
from typing import Any
import uuid

import bcrypt
import jwt

from taskdesk.core.config import settings, utils_logger

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime, or convert an aware one to UTC.

    SQLite drops tzinfo on round trip, so values read back from the store
    pass through here before being compared with ``utc_now()``.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        utils_logger.debug(
            f"Password exceeds {BCRYPT_MAX_BYTES} bytes ({len(password_bytes)} bytes), truncating"
        )
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a random salt.

    The cost factor comes from ``BCRYPT_ROUNDS``. Input longer than 72 bytes
    is truncated the same way here and in ``verify_password``.

    Args:
        password: The plain text password to hash. Cannot be None.

    Returns:
        str: The bcrypt hash (60 characters, ``$2b$<cost>$...``).

    Raises:
        ValueError: If password is None.

    Examples:
        >>> hashed = hash_password("MySecurePassword123")
        >>> hashed.startswith("$2b$")
        True
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    try:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(_password_bytes(password), salt)
        return hashed.decode("utf-8")
    except Exception as e:
        utils_logger.error(f"Failed to hash password: {type(e).__name__} - {str(e)}")
        raise


def verify_password(password: str | None, hashed_password: str | None) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: The plain text password to verify. Can be None.
        hashed_password: The bcrypt hash to verify against. Can be None.

    Returns:
        bool: True if password matches the hash. False for a mismatch and
        for any invalid input (None, malformed hash).

    Examples:
        >>> hashed = hash_password("MyPassword123")
        >>> verify_password("MyPassword123", hashed)
        True
        >>> verify_password("WrongPassword", hashed)
        False
    """
    if password is None or hashed_password is None:
        utils_logger.warning(
            "Password verification attempted with None value(s): "
            f"password={'None' if password is None else 'provided'}, "
            f"hashed_password={'None' if hashed_password is None else 'provided'}"
        )
        return False

    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except (ValueError, AttributeError) as e:
        utils_logger.warning(
            f"Password verification failed due to invalid hash format or encoding: {type(e).__name__}"
        )
        return False


def create_jwt_token(data: dict[str, Any] | None, expires_delta: timedelta) -> str:
    """
    Sign a JWT with the application secret.

    ``iat`` and ``exp`` are derived from a single clock reading so that
    ``exp - iat`` always equals ``expires_delta``. A random ``jti`` is added.

    Args:
        data: Claims to encode. Cannot be None.
        expires_delta: Lifetime of the token.

    Returns:
        str: Encoded JWT (``header.payload.signature``).

    Raises:
        ValueError: If data is None.
    """
    if data is None:
        utils_logger.error("Attempted to create JWT token with None data")
        raise ValueError("Data cannot be None")

    issued_at = utc_now()
    to_encode = data.copy()
    to_encode["iat"] = issued_at
    to_encode["exp"] = issued_at + expires_delta
    to_encode["jti"] = str(uuid.uuid4())

    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def generate_otp_code(length: int = 6) -> str:
    """
    Generate a numeric One-Time Password of ``length`` digits.

    Every value from ``0...0`` to ``9...9`` is equally likely; leading zeros
    are kept.

    Args:
        length: Number of digits. Default is 6.

    Returns:
        str: The zero-padded code.

    Examples:
        >>> len(generate_otp_code())
        6
    """
    return f"{secrets.randbelow(10**length):0{length}d}"


def mask_otp(otp: str) -> str:
    """
    Mask an OTP code for logging purposes, showing only first and last digit.

    Examples:
        >>> mask_otp("123456")
        '1****6'
        >>> mask_otp("12")
        '12'
    """
    if len(otp) <= 2:
        return otp

    return f"{otp[0]}{'*' * (len(otp) - 2)}{otp[-1]}"


def hmac_hash_otp(otp: str | None, secret: str | None) -> str:
    """
    Hash an OTP using HMAC-SHA256.

    Args:
        otp: The OTP code to hash. Cannot be None or empty.
        secret: The secret key for HMAC. Cannot be None or empty.

    Returns:
        str: The HMAC-SHA256 hash as a 64-character hexadecimal string.

    Raises:
        ValueError: If otp or secret is None or empty.
    """
    if not otp:
        utils_logger.error("Attempted to hash None or empty OTP")
        raise ValueError("OTP cannot be None or empty")

    if not secret:
        utils_logger.error("Attempted to hash OTP with None or empty secret")
        raise ValueError("Secret cannot be None or empty")

    return hmac.new(
        secret.encode("utf-8"), otp.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def hmac_verify_otp(
    otp: str | None, hashed_otp: str | None, secret: str | None
) -> bool:
    """
    Verify an OTP against its HMAC-SHA256 hash using constant-time comparison.

    Args:
        otp: The plain text OTP to verify. Can be None.
        hashed_otp: The stored hash. Can be None.
        secret: The secret key used for hashing. Can be None.

    Returns:
        bool: True if the OTP matches the hash, False otherwise, including for
        None or empty inputs.

    Examples:
        >>> hashed = hmac_hash_otp("123456", "secret")
        >>> hmac_verify_otp("123456", hashed, "secret")
        True
        >>> hmac_verify_otp("654321", hashed, "secret")
        False
    """
    if not otp or not hashed_otp or not secret:
        utils_logger.warning(
            "OTP verification attempted with invalid value(s): "
            f"otp={'None/empty' if not otp else 'provided'}, "
            f"hashed_otp={'None/empty' if not hashed_otp else 'provided'}, "
            f"secret={'None/empty' if not secret else 'provided'}"
        )
        return False

    computed_hash = hmac_hash_otp(otp, secret)
    result = hmac.compare_digest(computed_hash, hashed_otp)

    if not result:
        utils_logger.warning(f"OTP {mask_otp(otp)} verification failed: mismatch")

    return result


def format_duration(ms: int | float) -> str:
    """
    Render a millisecond duration as minutes and seconds.

    Args:
        ms: Duration in milliseconds. Negative values are treated as zero.

    Returns:
        str: ``"9m 59s"``, ``"45s"`` or ``"0s"``.

    Examples:
        >>> format_duration(599_000)
        '9m 59s'
        >>> format_duration(45_400)
        '45s'
        >>> format_duration(0)
        '0s'
    """
    total_seconds = max(int(ms // 1000), 0)
    minutes, seconds = divmod(total_seconds, 60)

    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def generate_random_password(length: int = 12) -> str:
    """
    Generate a random password for accounts that never log in with one.

    SSO-provisioned users get the bcrypt hash of such a password so the
    ``password_hash`` column is never empty. The plaintext is discarded.

    Args:
        length: Number of characters. Default is 12.

    Returns:
        str: A string of letters, digits and punctuation.
    """
    alphabet = string.ascii_letters + string.digits + string.punctuation
    return "".join(secrets.choice(alphabet) for _ in range(length))
