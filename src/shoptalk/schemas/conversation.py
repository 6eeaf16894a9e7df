"""Conversation list Pydantic schemas."""

from datetime import datetime

from pydantic import Field, field_validator

from shoptalk.db.time import ensure_utc

from .common import ApiModel


class ParticipantOut(ApiModel):
    """Public profile of the other participant."""

    id: str
    display_name: str | None = None
    avatar_url: str | None = None


class ConversationOut(ApiModel):
    """Conversation list row for the requesting user."""

    id: int
    participant: ParticipantOut
    last_message_id: int | None = None
    last_message_text: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = Field(0, ge=0)

    @field_validator("last_message_at")
    @classmethod
    def attach_utc(cls, value: datetime | None) -> datetime | None:
        """Report timestamps as UTC even when the backend stores them naive."""
        return ensure_utc(value)


class ConversationListResponse(ApiModel):
    """The requester's conversations, most recently active first."""

    conversations: list[ConversationOut] = Field(default_factory=list)


class ConversationLookupResponse(ApiModel):
    """Conversation id for a pair of users, or null before the first message."""

    conversation_id: int | None = None
