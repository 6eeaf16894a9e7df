"""SQLAlchemy models for the Shoptalk messaging engine."""

from .conversation import Conversation, canonical_pair
from .message import Message
from .user import User

__all__ = [
    "Conversation", "canonical_pair",
    "Message",
    "User",
]
