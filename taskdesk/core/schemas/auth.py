"""
Authentication schemas for request validation and response serialization.

- Email signup and OTP verification
- Email/password login
- SSO login
- User serialization (never exposes the password hash)
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
)

from taskdesk.core.enums import SSOProvider

# Password with validation constraints
PasswordStr = Annotated[
    str,
    StringConstraints(min_length=6, max_length=128),
    Field(description="Password (min 6 characters)"),
]

# OTP code with pattern validation
OTPCodeStr = Annotated[
    str,
    StringConstraints(min_length=6, max_length=6, pattern=r"^\d{6}$"),
    Field(description="6-digit verification code"),
]

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]


class MessageResponse(BaseModel):
    """Generic message response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"message": "Operation completed successfully", "success": True}
        }
    )

    message: str
    success: bool = True


class SignupRequest(BaseModel):
    """Request schema for email signup."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "secret1",
                "first_name": "Ada",
                "last_name": "Lovelace",
            }
        }
    )

    email: Annotated[EmailStr, Field(description="User's email address")]
    password: PasswordStr
    first_name: Annotated[NameStr, Field(description="User's first name")]
    last_name: Annotated[NameStr, Field(description="User's last name")]


class OTPVerifyRequest(BaseModel):
    """Request schema for OTP verification."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "user@example.com", "code": "123456"}}
    )

    email: Annotated[EmailStr, Field(description="Email the OTP was sent to")]
    code: OTPCodeStr


class ResendOTPRequest(BaseModel):
    """Request schema for resending OTP."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "user@example.com"}}
    )

    email: Annotated[EmailStr, Field(description="Email to resend OTP to")]


class LoginRequest(BaseModel):
    """Request schema for email login."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "user@example.com", "password": "secret1"}
        }
    )

    email: Annotated[EmailStr, Field(description="User's email address")]
    password: PasswordStr


class SSOLoginRequest(BaseModel):
    """Request schema for SSO login."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "google",
                "sso_token": "eyJhbGciOiJSUzI1NiIsImtpZCI6Ij...",
                "first_name": "Ada",
                "last_name": "Lovelace",
            }
        }
    )

    provider: Annotated[SSOProvider, Field(description="Identity provider")]
    sso_token: Annotated[
        str,
        StringConstraints(min_length=1),
        Field(description="ID token issued by the provider to the client app"),
    ]
    first_name: Annotated[
        str | None,
        StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
        Field(description="Used for new accounts when the provider sends no name"),
    ] = None
    last_name: Annotated[
        str | None,
        StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
        Field(description="Used for new accounts when the provider sends no name"),
    ] = None


class UserResponse(BaseModel):
    """Response schema for a user. The password hash is never included."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "user@example.com",
                "first_name": "Ada",
                "last_name": "Lovelace",
                "verified": True,
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-20T15:45:00Z",
            }
        },
    )

    id: UUID
    email: str
    first_name: str
    last_name: str
    verified: bool
    created_at: datetime
    updated_at: datetime


class LoginResponse(BaseModel):
    """Response schema for successful login."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "user": UserResponse.model_config["json_schema_extra"]["example"],
            }
        }
    )

    access_token: Annotated[str, Field(description="Session token")]
    token_type: Literal["bearer"] = "bearer"
    user: UserResponse


def sanitize_user(user) -> UserResponse:
    """Serialize a user without credential fields."""
    return UserResponse.model_validate(user)
