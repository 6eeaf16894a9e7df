"""Version 1 API endpoints."""

from .endpoints import messages_router

__all__ = ["messages_router"]
