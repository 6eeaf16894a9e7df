"""Conversation list loading for the inbox screen."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shoptalk.errors import MessagingError
from shoptalk.schemas import ConversationOut

from .api import MessagingApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboxView:
    """Conversations to render, or an empty list plus the error that caused it."""

    conversations: list[ConversationOut] = field(default_factory=list)
    error: MessagingError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def load_inbox(api: MessagingApiClient) -> InboxView:
    """Load the signed-in user's conversations without raising on failure."""
    try:
        conversations = await api.list_conversations()
    except MessagingError as exc:
        logger.warning("Could not load conversations: %s", exc.message)
        return InboxView(conversations=[], error=exc)
    return InboxView(conversations=conversations)
