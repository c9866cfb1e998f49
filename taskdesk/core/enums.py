from enum import Enum


class SSOProvider(str, Enum):
    """Supported SSO identity providers."""

    GOOGLE = "google"
    FACEBOOK = "facebook"


class OTPPurpose(str, Enum):
    """Purpose of an OTP record."""

    SIGNUP = "signup"
    RESEND = "resend"


class TokenKind(str, Enum):
    """Kind of session token; each kind has its own lifetime."""

    OTP = "otp"
    LOGIN = "login"


class SessionFailure(str, Enum):
    """Reason a session token was rejected, in validation order."""

    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    PAYLOAD_INVALID = "payload_invalid"
    REVOKED = "revoked"
    USER_NOT_FOUND = "user_not_found"
    NOT_VERIFIED = "not_verified"
