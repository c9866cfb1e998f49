"""
Routers for the application.

This module exports the FastAPI routers included by the main application.
"""

from taskdesk.core.routers.auth import router as auth_router

__all__ = ["auth_router"]
