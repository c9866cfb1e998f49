"""
Authentication router for handling all auth-related endpoints.

This module provides endpoints for:
- Email signup with OTP verification
- OTP resend
- Email/password login
- SSO login (Google, Facebook)
- Current user profile

All endpoints are prefixed with /auth when mounted in the main app.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.config import auth_logger
from taskdesk.core.db.crud import user_db
from taskdesk.core.dependencies import CurrentUser, get_async_session
from taskdesk.core.enums import OTPPurpose
from taskdesk.core.exceptions.types import BadRequestException, UserNotFoundException
from taskdesk.core.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OTPVerifyRequest,
    ResendOTPRequest,
    SignupRequest,
    SSOLoginRequest,
    UserResponse,
    sanitize_user,
)
from taskdesk.core.services.auth import AuthService
from taskdesk.core.services.otp import OTPService


router = APIRouter()


# =============================================================================
# Email Signup Endpoints
# =============================================================================


@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up with email",
    description="""
## Create a New User Account

Register a new user with email and password. On success a **6-digit OTP**
is emailed to the address and the account is created **unverified**.

### Authentication Flow

1. **Submit signup request** with email, password, first and last name
2. **Receive OTP** via email (valid for 10 minutes)
3. **Verify email** using `POST /auth/signup/verify_otp`
4. **Log in** using `POST /auth/login`

### Request Body

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `email` | string | ✅ | Valid email address |
| `password` | string | ✅ | At least 6 characters |
| `first_name` | string | ✅ | At least 2 characters |
| `last_name` | string | ✅ | At least 2 characters |

### Error Responses

| Status | Reason |
|--------|--------|
| `409 Conflict` | Email already registered |
| `422 Unprocessable Entity` | Invalid fields |
| `500 Internal Server Error` | Verification email could not be sent; nothing is saved |
""",
    responses={
        409: {
            "description": "Email already registered",
            "content": {
                "application/json": {"example": {"detail": "User already exists."}}
            },
        },
    },
)
async def signup(
    request_data: SignupRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """
    Create an unverified user and email a signup OTP.

    The user row and the OTP record are committed together, and only once
    the email has been handed to the mail provider.

    Raises:
        UserAlreadyExistsException: If the email is already registered.
        EmailDeliveryException: If the OTP email could not be delivered.
    """
    async with session.begin():
        await AuthService.signup(
            session=session,
            email=request_data.email,
            password=request_data.password,
            first_name=request_data.first_name,
            last_name=request_data.last_name,
            commit_self=False,
        )

    return MessageResponse(message="User created. Please verify with OTP.")


@router.post(
    "/signup/verify_otp",
    response_model=MessageResponse,
    summary="Verify signup OTP",
    description="""
## Verify Email

Confirm the account with the 6-digit code emailed at signup. A code can be
used **once**; afterwards the account is verified and can log in.

### Request Body

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `email` | string | ✅ | Email address the OTP was sent to |
| `code` | string | ✅ | 6-digit verification code |

### Error Responses

| Status | Reason |
|--------|--------|
| `400 Bad Request` | Already verified, no code / already used, expired, or wrong code |
| `404 Not Found` | No user with this email |
| `422 Unprocessable Entity` | Code is not 6 digits |
| `429 Too Many Requests` | Too many attempts for this email; see `Retry-After` |
""",
    responses={
        400: {
            "description": "OTP rejected",
            "content": {
                "application/json": {"example": {"detail": "Invalid OTP code."}}
            },
        },
        404: {
            "description": "User not found",
            "content": {"application/json": {"example": {"detail": "User not found."}}},
        },
        429: {
            "description": "Rate limited",
            "content": {
                "application/json": {
                    "example": {"detail": "Too many requests. Please wait a moment."}
                }
            },
        },
    },
)
async def verify_signup_otp(
    request_data: OTPVerifyRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """
    Verify the signup OTP and mark the user verified.

    Raises:
        RateLimitExceededException: If the email exceeded the attempt window.
        UserNotFoundException: If no user exists with the email.
        BadRequestException: If the user is already verified.
        OTPNotFoundException: If there is no unconsumed code.
        OTPExpiredException: If the code has expired.
        OTPInvalidException: If the code does not match.
    """
    await OTPService.check_rate_limit(request_data.email, "otp_verify")

    async with session.begin():
        user = await user_db.get_by_email(session, request_data.email)
        if user is None:
            raise UserNotFoundException()

        if user.verified:
            raise BadRequestException("User already verified.")

        await OTPService.verify(
            session=session,
            user=user,
            purpose=OTPPurpose.SIGNUP,
            code=request_data.code,
            commit_self=False,
        )

    auth_logger.info(f"Signup verified: user={user.id}")
    return MessageResponse(message="User successfully verified. Please login.")


@router.post(
    "/signup/verify_otp/resend",
    response_model=MessageResponse,
    summary="Resend signup OTP",
    description="""
## Resend Verification Code

Email a new signup code. A new code is only issued once the previous one has
**expired**; until then the response says how long to wait.

### Request Body

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `email` | string | ✅ | Email address to resend the code to |

### Error Responses

| Status | Reason |
|--------|--------|
| `400 Bad Request` | Already verified, or current code still valid (`Retry-After` set) |
| `404 Not Found` | No user with this email |
| `429 Too Many Requests` | Too many requests for this email; see `Retry-After` |
| `500 Internal Server Error` | Email could not be sent; the old code stays in place |
""",
    responses={
        400: {
            "description": "Code still valid",
            "content": {
                "application/json": {
                    "example": {"detail": "OTP not expired yet. Try again in 9m 59s"}
                }
            },
        },
        404: {
            "description": "User not found",
            "content": {"application/json": {"example": {"detail": "User not found."}}},
        },
    },
)
async def resend_signup_otp(
    request_data: ResendOTPRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """
    Replace an expired signup OTP and email the new one.

    Raises:
        RateLimitExceededException: If the email exceeded the request window.
        UserNotFoundException: If no user exists with the email.
        BadRequestException: If the user is already verified.
        OTPStillValidException: If the current code has not expired.
        EmailDeliveryException: If the email could not be delivered.
    """
    await OTPService.check_rate_limit(request_data.email, "otp_resend")

    async with session.begin():
        user = await user_db.get_by_email(session, request_data.email)
        if user is None:
            raise UserNotFoundException()

        if user.verified:
            raise BadRequestException("User already verified.")

        await OTPService.resend(
            session=session,
            user=user,
            purpose=OTPPurpose.SIGNUP,
            commit_self=False,
        )

    return MessageResponse(message="OTP sent successfully.")


# =============================================================================
# Login Endpoints
# =============================================================================


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in with email",
    description="""
## Email Login

Exchange a verified account's email and password for a **session token**.

Logging in revokes every session token issued to the account before, so
only the most recent login stays valid.

### Success Response (200)

```json
{
  "access_token": "eyJhbGciOiJIUzI1NiIs...",
  "token_type": "bearer",
  "user": {"id": "...", "email": "user@example.com", "verified": true, ...}
}
```

### Error Responses

| Status | Reason |
|--------|--------|
| `401 Unauthorized` | Invalid email or password |
| `403 Forbidden` | Account not verified yet |
""",
    responses={
        401: {
            "description": "Invalid credentials",
            "content": {
                "application/json": {
                    "example": {"detail": "Invalid email or password."}
                }
            },
        },
        403: {
            "description": "Account not verified",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "User not verified. Please verify your email."
                    }
                }
            },
        },
    },
)
async def login(
    request_data: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> LoginResponse:
    async with session.begin():
        token, user = await AuthService.login(
            session=session,
            email=request_data.email,
            password=request_data.password,
        )

    return LoginResponse(access_token=token, user=sanitize_user(user))


@router.post(
    "/login/sso",
    response_model=LoginResponse,
    summary="Log in with SSO",
    description="""
## SSO Login

Exchange an ID token issued by **Google** or **Facebook** (Limited Login) for
a session token. The account is matched on the email inside the verified
token. A new, already verified account is created when none exists.

### Request Body

| Field | Type | Required | Description |
|-------|------|----------|-------------|
| `provider` | string | ✅ | `google` or `facebook` |
| `sso_token` | string | ✅ | ID token from the provider |
| `first_name` | string | ❌ | Used for new accounts without a name claim |
| `last_name` | string | ❌ | Used for new accounts without a name claim |

### Error Responses

| Status | Reason |
|--------|--------|
| `401 Unauthorized` | Token signature, issuer, audience or expiry invalid |
| `422 Unprocessable Entity` | Unsupported provider |
""",
    responses={
        401: {
            "description": "Invalid SSO token",
            "content": {
                "application/json": {"example": {"detail": "Invalid SSO token."}}
            },
        },
    },
)
async def sso_login(
    request_data: SSOLoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> LoginResponse:
    async with session.begin():
        token, user = await AuthService.sso_login(
            session=session,
            provider=request_data.provider,
            assertion=request_data.sso_token,
            first_name=request_data.first_name,
            last_name=request_data.last_name,
        )

    return LoginResponse(access_token=token, user=sanitize_user(user))


# =============================================================================
# Profile Endpoints
# =============================================================================


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="""
## Current User

Return the account that owns the bearer token.

### Error Responses

| Status | Reason |
|--------|--------|
| `401 Unauthorized` | Missing, malformed, expired or revoked token |
| `403 Forbidden` | Account not verified |
""",
)
async def get_me(user: CurrentUser) -> UserResponse:
    return sanitize_user(user)
