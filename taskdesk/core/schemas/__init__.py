"""
Shared schemas for API request validation and response serialization.

"""

from taskdesk.core.schemas.auth import (
    # Base
    MessageResponse,
    # Signup
    SignupRequest,
    # OTP
    OTPVerifyRequest,
    ResendOTPRequest,
    # Login
    LoginRequest,
    LoginResponse,
    SSOLoginRequest,
    # User
    UserResponse,
    sanitize_user,
)

__all__ = [
    "MessageResponse",
    "SignupRequest",
    "OTPVerifyRequest",
    "ResendOTPRequest",
    "LoginRequest",
    "LoginResponse",
    "SSOLoginRequest",
    "UserResponse",
    "sanitize_user",
]
