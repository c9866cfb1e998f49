from fastapi import status

from taskdesk.core.enums import SessionFailure


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


# -----------------------------------------------------------------------------
# Dependency failures (store, cache, email). Detail stays in the server logs.
# -----------------------------------------------------------------------------


class DependencyException(AppException):
    """Exception raised when a backing service fails."""

    def __init__(self, message: str = "A dependency failed."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class DatabaseException(DependencyException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message)


class EmailDeliveryException(DependencyException):
    """Exception raised when an outbound email could not be delivered."""

    def __init__(self, message: str = "Failed to send email."):
        super().__init__(message)


class TokenVersionStoreException(DependencyException):
    """Exception raised when the token version store cannot be updated."""

    def __init__(self, message: str = "Token version store unavailable."):
        super().__init__(message)


# -----------------------------------------------------------------------------
# Authentication
# -----------------------------------------------------------------------------


class AuthenticationException(AppException):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str = "Authentication failed."):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialsException(AuthenticationException):
    """Raised for an unknown email and for a wrong password alike."""

    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message)


class SSOValidationException(AuthenticationException):
    """Exception raised when an SSO assertion fails validation."""

    def __init__(self, message: str = "Invalid SSO token."):
        super().__init__(message)


class SessionTokenException(AuthenticationException):
    """
    Exception raised when a bearer token is rejected.

    ``reason`` records which check failed; the client only sees ``message``.
    """

    def __init__(
        self,
        reason: SessionFailure,
        message: str = "Could not validate credentials.",
    ):
        super().__init__(message)
        self.reason = reason


# -----------------------------------------------------------------------------
# Authorization
# -----------------------------------------------------------------------------


class ForbiddenException(AppException):
    """Exception raised when access is forbidden."""

    def __init__(self, message: str = "Access forbidden."):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class UnverifiedAccountException(ForbiddenException):
    """Exception raised when the account's email has not been verified."""

    def __init__(
        self, message: str = "User not verified. Please verify your email."
    ):
        super().__init__(message)


class SessionForbiddenException(ForbiddenException):
    """Exception raised when a valid bearer token belongs to an unverified user."""

    def __init__(
        self,
        reason: SessionFailure = SessionFailure.NOT_VERIFIED,
        message: str = "User is not yet verified. Please verify the user.",
    ):
        super().__init__(message)
        self.reason = reason


# -----------------------------------------------------------------------------
# OTP
# -----------------------------------------------------------------------------


class OTPNotFoundException(AppException):
    """Exception raised when there is no live OTP to verify against."""

    def __init__(self, message: str = "No OTP found or already used."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class OTPAlreadyUsedException(OTPNotFoundException):
    """Exception raised when the latest OTP has already been consumed."""

    def __init__(self, message: str = "OTP already used."):
        super().__init__(message)


class OTPExpiredException(AppException):
    """Exception raised when OTP has expired."""

    def __init__(self, message: str = "OTP has expired. Please request a new one."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class OTPInvalidException(AppException):
    """Exception raised when OTP is invalid."""

    def __init__(self, message: str = "Invalid OTP code."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class OTPStillValidException(AppException):
    """Exception raised when a resend is requested while a code is still live."""

    def __init__(
        self,
        message: str = "OTP not expired yet.",
        retry_after: int | None = None,
    ):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.retry_after = retry_after


class RateLimitExceededException(AppException):
    """Exception raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Too many requests. Please wait a moment.",
        retry_after: int | None = None,
    ):
        super().__init__(message, status.HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after = retry_after


# -----------------------------------------------------------------------------
# Resources
# -----------------------------------------------------------------------------


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found."):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UserNotFoundException(NotFoundException):
    """Exception raised when a user is not found."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class ConflictException(AppException):
    """Exception raised when there's a conflict with existing resources."""

    def __init__(self, message: str = "Resource conflict."):
        super().__init__(message, status.HTTP_409_CONFLICT)


class UserAlreadyExistsException(ConflictException):
    """Exception raised when a user already exists."""

    def __init__(self, message: str = "User already exists."):
        super().__init__(message)


class BadRequestException(AppException):
    """Exception raised for bad request errors."""

    def __init__(self, message: str = "Bad request."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


__all__ = [
    "AppException",
    "DependencyException",
    "DatabaseException",
    "EmailDeliveryException",
    "TokenVersionStoreException",
    "AuthenticationException",
    "InvalidCredentialsException",
    "SSOValidationException",
    "SessionTokenException",
    "ForbiddenException",
    "UnverifiedAccountException",
    "SessionForbiddenException",
    "OTPNotFoundException",
    "OTPAlreadyUsedException",
    "OTPExpiredException",
    "OTPInvalidException",
    "OTPStillValidException",
    "RateLimitExceededException",
    "NotFoundException",
    "UserNotFoundException",
    "ConflictException",
    "UserAlreadyExistsException",
    "BadRequestException",
]
