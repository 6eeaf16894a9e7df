"""Optimistic sending for an open chat thread.

A message typed by the user is shown at once as ``PENDING`` under a local
temporary id. When the server answers it becomes ``CONFIRMED`` (server id and
server timestamp replace the local ones) or ``FAILED`` (kept visible with its
error). Nothing is resent automatically; ``retry`` is an explicit new attempt
with a new temporary id.

Confirmation never moves a message within ``ChatThread.messages``. The server
order is only re-derived by ``load``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from shoptalk.errors import MessagingError, ValidationError
from shoptalk.schemas import MessageOut

from .api import MessagingApiClient

if TYPE_CHECKING:
    from .badge import UnreadBadgePoller

logger = logging.getLogger(__name__)


class DeliveryState(Enum):
    """Lifecycle of a message as seen by the sending device."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def new_local_id() -> str:
    """Return a temporary id for a message the server has not stored yet."""
    return f"local-{uuid.uuid4().hex}"


@dataclass
class LocalMessage:
    """A message row as rendered by the thread screen."""

    local_id: str
    text: str
    created_at: datetime
    sent_by_me: bool = True
    server_id: int | None = None
    read: bool = False
    state: DeliveryState = DeliveryState.PENDING
    error: MessagingError | None = field(default=None, compare=False)

    @property
    def id(self) -> int | str:
        """Server id once confirmed, otherwise the temporary id."""
        return self.server_id if self.server_id is not None else self.local_id

    @classmethod
    def from_server(cls, message: MessageOut) -> LocalMessage:
        return cls(
            local_id=f"server-{message.id}",
            text=message.text,
            created_at=message.created_at,
            sent_by_me=message.sent_by_me,
            server_id=message.id,
            read=message.read,
            state=DeliveryState.CONFIRMED,
        )

    def confirm(self, message: MessageOut) -> None:
        if self.state is not DeliveryState.PENDING:
            raise ValueError(f"Cannot confirm a {self.state.value} message")
        self.server_id = message.id
        self.created_at = message.created_at
        self.read = message.read
        self.state = DeliveryState.CONFIRMED
        self.error = None

    def fail(self, error: MessagingError) -> None:
        if self.state is not DeliveryState.PENDING:
            raise ValueError(f"Cannot fail a {self.state.value} message")
        self.state = DeliveryState.FAILED
        self.error = error


class ChatThread:
    """Client-side state of the conversation with one other user."""

    def __init__(
        self,
        api: MessagingApiClient,
        other_user_id: str,
        badge: UnreadBadgePoller | None = None,
    ) -> None:
        self.api = api
        self.other_user_id = other_user_id
        self.badge = badge
        self.conversation_id: int | None = None
        self.messages: list[LocalMessage] = []

    def _find(self, local_id: str) -> LocalMessage:
        for message in self.messages:
            if message.local_id == local_id:
                return message
        raise KeyError(local_id)

    async def load(self, mark_read: bool = True) -> list[LocalMessage]:
        """Replace the visible thread with the server's ordered copy.

        When the pair already has a conversation it is marked read, which
        also asks the badge poller to refresh.
        """
        thread = await self.api.get_thread(self.other_user_id)
        self.conversation_id = thread.conversation_id
        self.messages = [LocalMessage.from_server(message) for message in thread.messages]

        if mark_read and self.conversation_id is not None:
            try:
                await self.mark_read()
            except MessagingError as exc:
                logger.warning(
                    "Could not mark conversation %s read: %s", self.conversation_id, exc.message
                )
        return self.messages

    def submit(self, text: str) -> LocalMessage:
        """Append a ``PENDING`` message for ``text`` and return it."""
        text = text.strip()
        if not text:
            raise ValidationError("Message text cannot be empty")
        message = LocalMessage(
            local_id=new_local_id(),
            text=text,
            created_at=datetime.now(UTC),
        )
        self.messages.append(message)
        return message

    async def deliver(self, message: LocalMessage) -> LocalMessage:
        """Send a pending message and settle it as confirmed or failed."""
        if message.state is not DeliveryState.PENDING:
            raise ValueError("Only pending messages can be delivered")
        try:
            response = await self.api.send_message(self.other_user_id, message.text)
        except MessagingError as exc:
            logger.info("Message %s failed: %s", message.local_id, exc.message)
            message.fail(exc)
            return message

        message.confirm(response.message)
        self.conversation_id = response.conversation_id
        return message

    async def send(self, text: str) -> LocalMessage:
        """Submit ``text`` and wait for the server's answer."""
        return await self.deliver(self.submit(text))

    async def retry(self, failed: LocalMessage) -> LocalMessage:
        """Replace a failed message with a fresh pending attempt."""
        if failed.state is not DeliveryState.FAILED:
            raise ValueError("Only failed messages can be retried")
        self.messages.remove(self._find(failed.local_id))
        return await self.send(failed.text)

    async def mark_read(self) -> int:
        """Mark the other participant's messages read and refresh the badge."""
        if self.conversation_id is None:
            return 0
        response = await self.api.mark_read(self.conversation_id)
        for message in self.messages:
            if not message.sent_by_me:
                message.read = True
        if self.badge is not None:
            await self.badge.refresh()
        return response.marked
