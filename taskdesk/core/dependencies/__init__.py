"""
Shared dependencies for FastAPI endpoints.

"""

from taskdesk.core.dependencies.auth import (
    bearer_scheme,
    get_current_user,
    CurrentUser,
)
from taskdesk.core.dependencies.db import get_async_session

__all__ = [
    "bearer_scheme",
    "get_current_user",
    "CurrentUser",
    "get_async_session",
]
