"""
Authentication dependencies for FastAPI endpoints.

Every protected endpoint depends on ``get_current_user``, which reads the
``Authorization: Bearer <token>`` header and runs the session validator.
A missing or rejected token fails with 401, an unverified account with 403.

Example usage:
    from taskdesk.core.dependencies.auth import CurrentUser

    @router.get("/me")
    async def get_profile(user: CurrentUser):
        return user
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.config import auth_logger
from taskdesk.core.db.models import User
from taskdesk.core.dependencies.db import get_async_session
from taskdesk.core.enums import SessionFailure, TokenKind
from taskdesk.core.exceptions.types import SessionTokenException
from taskdesk.core.services.session import SessionTokenService

# auto_error=False so a missing header goes through the app's own 401 handler
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """
    Validate the bearer token and return its user.

    Args:
        credentials: The HTTP Bearer credentials, None if the header is absent.
        session: The database session.

    Returns:
        User: The authenticated, verified user.

    Raises:
        SessionTokenException: 401 if the token is missing or rejected.
        SessionForbiddenException: 403 if the user is not verified.

    Example:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": str(user.id)}
    """
    if credentials is None or not credentials.credentials:
        auth_logger.warning("Authentication failed: missing bearer token")
        raise SessionTokenException(reason=SessionFailure.MALFORMED)

    # Use a transaction to avoid leaving an implicit one open
    async with session.begin():
        user = await SessionTokenService.validate(
            session, credentials.credentials, expected_kind=TokenKind.LOGIN
        )

    auth_logger.debug(f"User authenticated: {user.id}")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
