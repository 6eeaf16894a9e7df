"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import Field, field_validator

from shoptalk.db.time import ensure_utc

from .common import ApiModel


class SendMessageRequest(ApiModel):
    """Schema for sending a message to another user."""

    recipient_id: str = Field(..., description="Id of the user receiving the message")
    text: str = Field(..., description="Message body; must not be blank")


class MessageOut(ApiModel):
    """Schema for a message as seen by one participant."""

    id: int
    conversation_id: int
    sender_id: str
    text: str
    created_at: datetime
    read: bool
    sent_by_me: bool = Field(..., description="True if the requesting user sent this message")

    @field_validator("created_at")
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        """Report timestamps as UTC even when the backend stores them naive."""
        return ensure_utc(value)


class SendMessageResponse(ApiModel):
    """Response returned once the server has stored a message."""

    message: MessageOut
    conversation_id: int


class ThreadResponse(ApiModel):
    """Messages between the requester and another user, oldest first."""

    conversation_id: int | None = None
    messages: list[MessageOut] = Field(default_factory=list)


class MarkReadResponse(ApiModel):
    """Acknowledgement for a mark-read request."""

    success: bool = True
    conversation_id: int
    marked: int = Field(0, description="Messages that transitioned to read by this call")


class UnreadCountResponse(ApiModel):
    """Aggregate unread messages for the requester."""

    count: int = Field(..., ge=0)
