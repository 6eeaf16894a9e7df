"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
The client layer parses server responses with the same models.
"""

from .conversation import (
    ConversationListResponse,
    ConversationLookupResponse,
    ConversationOut,
    ParticipantOut,
)
from .message import (
    MarkReadResponse,
    MessageOut,
    SendMessageRequest,
    SendMessageResponse,
    ThreadResponse,
    UnreadCountResponse,
)

__all__ = [
    "ConversationListResponse", "ConversationLookupResponse", "ConversationOut", "ParticipantOut",
    "MarkReadResponse", "MessageOut", "SendMessageRequest", "SendMessageResponse",
    "ThreadResponse", "UnreadCountResponse",
]
