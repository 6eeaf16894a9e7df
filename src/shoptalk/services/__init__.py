"""Business logic services for the Shoptalk messaging engine."""

from shoptalk.errors import (
    ForbiddenError,
    MessagingError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationError,
)
from .messaging import ConversationSummary, MessagingService, SendResult, Thread, ThreadEntry
from .users import SqlUserDirectory, UserDirectory

__all__ = [
    "MessagingService", "SendResult", "Thread", "ThreadEntry", "ConversationSummary",
    "SqlUserDirectory", "UserDirectory",
    "MessagingError", "ValidationError", "UnauthorizedError", "ForbiddenError",
    "NotFoundError", "TransientError",
]
