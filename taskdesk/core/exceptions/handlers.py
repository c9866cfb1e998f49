from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskdesk.core.config import request_logger
from taskdesk.core.exceptions.types import (
    AppException,
    AuthenticationException,
    BadRequestException,
    ConflictException,
    DependencyException,
    ForbiddenException,
    NotFoundException,
    OTPExpiredException,
    OTPInvalidException,
    OTPNotFoundException,
    OTPStillValidException,
    RateLimitExceededException,
    SessionForbiddenException,
    SessionTokenException,
)


def _retry_after_headers(retry_after: int | None) -> dict[str, str]:
    if retry_after:
        return {"Retry-After": str(retry_after)}
    return {}


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles any AppException without a more specific handler.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: The message, plus ``details`` when the exception carries them.
    """
    request_logger.error(
        f"AppException on {request.method} {request.url.path}: {exc}"
    )
    content: dict = {"detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def dependency_exception_handler(request: Request, exc: DependencyException):
    """
    Handles failures of backing services (database, token store, email).

    The full error is logged; the client receives an opaque message.

    Args:
        request: The request object.
        exc (DependencyException): The dependency exception instance.

    Returns:
        JSONResponse: A response with status code 500.
    """
    request_logger.error(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "An internal error occurred."},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions by returning a JSON response.

    Args:
        request: The request object.
        exc (AuthenticationException): The authentication exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 401.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def session_token_exception_handler(
    request: Request, exc: SessionTokenException
):
    """Logs the precise rejection reason and returns the coarse 401."""
    request_logger.warning(
        f"Session token rejected on {request.url.path}: reason={exc.reason.value}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def session_forbidden_exception_handler(
    request: Request, exc: SessionForbiddenException
):
    request_logger.warning(
        f"Session token refused on {request.url.path}: reason={exc.reason.value}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    """
    Handles forbidden exceptions by returning a JSON response.

    Args:
        request: The request object.
        exc (ForbiddenException): The forbidden exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 403.
    """
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def otp_not_found_exception_handler(
    request: Request, exc: OTPNotFoundException
):
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def otp_expired_exception_handler(request: Request, exc: OTPExpiredException):
    """
    Handles OTP expired exceptions by returning a JSON response.

    Args:
        request: The request object.
        exc (OTPExpiredException): The OTP expired exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 400.
    """
    request_logger.warning(f"OTPExpiredException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def otp_invalid_exception_handler(request: Request, exc: OTPInvalidException):
    """
    Handles OTP invalid exceptions by returning a JSON response.

    Args:
        request: The request object.
        exc (OTPInvalidException): The OTP invalid exception instance.

    Returns:
        JSONResponse: A response containing the error message and status code 400.
    """
    request_logger.warning(f"OTPInvalidException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def otp_still_valid_exception_handler(
    request: Request, exc: OTPStillValidException
):
    """
    Handles resend requests made while the previous OTP is still live.

    Returns:
        JSONResponse: Status code 400 with the remaining wait, and a
        Retry-After header when the wait is known.
    """
    request_logger.info(f"OTPStillValidException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
        headers=_retry_after_headers(exc.retry_after),
    )


async def rate_limit_exception_handler(
    request: Request, exc: RateLimitExceededException
):
    """
    Handles rate limit exceeded exceptions by returning a JSON response.

    Args:
        request: The request object.
        exc (RateLimitExceededException): The rate limit exception instance.

    Returns:
        JSONResponse: A response with status code 429 and optional Retry-After header.
    """
    request_logger.warning(f"RateLimitExceededException: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
        headers=_retry_after_headers(exc.retry_after),
    )


async def not_found_exception_handler(request: Request, exc: NotFoundException):
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def conflict_exception_handler(request: Request, exc: ConflictException):
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def bad_request_exception_handler(request: Request, exc: BadRequestException):
    request_logger.warning(f"{type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """
    Handles request validation errors with one entry per offending field.

    Args:
        request: The request object.
        exc (RequestValidationError): The validation error raised by FastAPI.

    Returns:
        JSONResponse: Status code 422 with ``{"detail": [{"field", "message"}]}``.
    """
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query" location segment
        location = [str(part) for part in error.get("loc", ())[1:]]
        errors.append(
            {
                "field": ".".join(location) or "body",
                "message": error.get("msg", "Invalid value."),
            }
        )

    request_logger.info(
        f"Validation failed on {request.method} {request.url.path}: "
        f"{[e['field'] for e in errors]}"
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {"detail": "An internal error occurred."},
            }
        },
    },
    status.HTTP_401_UNAUTHORIZED: {
        "description": "Authentication Error",
        "content": {
            "application/json": {
                "example": {"detail": "Could not validate credentials."},
            }
        },
    },
    status.HTTP_422_UNPROCESSABLE_ENTITY: {
        "description": "Validation Error",
        "content": {
            "application/json": {
                "example": {
                    "detail": [
                        {"field": "email", "message": "value is not a valid email address"}
                    ]
                },
            }
        },
    },
    status.HTTP_429_TOO_MANY_REQUESTS: {
        "description": "Rate Limit Exceeded",
        "content": {
            "application/json": {
                "example": {"detail": "Too many requests. Please wait a moment."},
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "dependency_exception_handler",
    "authentication_exception_handler",
    "session_token_exception_handler",
    "session_forbidden_exception_handler",
    "forbidden_exception_handler",
    "otp_not_found_exception_handler",
    "otp_expired_exception_handler",
    "otp_invalid_exception_handler",
    "otp_still_valid_exception_handler",
    "rate_limit_exception_handler",
    "not_found_exception_handler",
    "conflict_exception_handler",
    "bad_request_exception_handler",
    "validation_exception_handler",
    "exception_schema",
]
