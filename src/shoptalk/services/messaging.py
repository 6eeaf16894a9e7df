"""Messaging service: the operations screens call to exchange messages.

Every write keeps the conversation index (``conversations`` row) in step with
the message store inside one transaction, serialized per participant pair:

- ``send`` inserts the message, refreshes the last-message cache and bumps the
  recipient's unread counter.
- ``mark_read`` flips the caller's unread messages to read and zeroes the
  caller's counter.

Counters are changed with SQL expressions, never by read-modify-write in Python.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shoptalk.core.settings import settings
from shoptalk.db.time import ensure_utc, utcnow
from shoptalk.errors import (
    ForbiddenError,
    MessagingError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from shoptalk.models import Conversation, Message, User, canonical_pair
from shoptalk.services.conversation_index import (
    ConversationLocks,
    IndexDrift,
    apply_snapshot,
    conversation_locks,
    find_conversation,
    lock_conversation,
    recount,
    snapshot,
)
from shoptalk.services.users import SqlUserDirectory, UserDirectory

logger = logging.getLogger(__name__)

MAX_USER_ID_LENGTH = 64
# Largest id a signed 64-bit INTEGER column can hold.
MAX_CONVERSATION_ID = 2**63 - 1


@dataclass(frozen=True)
class SendResult:
    """Outcome of a successful send."""

    message: Message
    conversation_id: int


@dataclass(frozen=True)
class ThreadEntry:
    """A message annotated relative to the user reading the thread."""

    message: Message
    sent_by_me: bool


@dataclass(frozen=True)
class Thread:
    """Ordered messages between two users.

    ``conversation_id`` is None when the pair has not exchanged a message yet.
    """

    conversation_id: int | None
    entries: list[ThreadEntry]


@dataclass(frozen=True)
class ConversationSummary:
    """Conversation list row projected for one participant."""

    conversation_id: int
    other_user: User
    last_message_id: int | None
    last_message_text: str | None
    last_message_at: datetime | None
    unread_count: int


class MessagingService:
    """Send, read and summarize two-party conversations."""

    def __init__(
        self,
        db: Session,
        users: UserDirectory | None = None,
        locks: ConversationLocks | None = None,
        max_text_bytes: int | None = None,
    ) -> None:
        self.db = db
        self.users = users or SqlUserDirectory(db)
        self.locks = locks or conversation_locks
        self.max_text_bytes = max_text_bytes or settings.message_max_bytes

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_user_id(value: str, field: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} must be a non-empty string")
        value = value.strip()
        if len(value) > MAX_USER_ID_LENGTH:
            raise ValidationError(f"{field} is too long")
        return value

    @staticmethod
    def _validate_conversation_id(value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("conversation_id must be an integer")
        if not 0 < value <= MAX_CONVERSATION_ID:
            raise ValidationError("conversation_id must be a positive 64-bit integer")
        return value

    def _validate_text(self, text: str) -> str:
        if not isinstance(text, str):
            raise ValidationError("Message text must be a string")
        text = text.strip()
        if not text:
            raise ValidationError("Message text cannot be empty")
        if len(text.encode("utf-8")) > self.max_text_bytes:
            raise ValidationError(
                f"Message text exceeds the maximum of {self.max_text_bytes} bytes"
            )
        return text

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send(self, sender_id: str, recipient_id: str, text: str) -> SendResult:
        """Store a message from ``sender_id`` to ``recipient_id``.

        Args:
            sender_id: Authenticated sender.
            recipient_id: The other participant.
            text: Message body; surrounding whitespace is stripped.

        Returns:
            The created message and the id of its conversation.

        Raises:
            ValidationError: Empty or oversized text, malformed ids, or a
                message addressed to the sender.
            NotFoundError: Unknown sender or recipient.
            TransientError: The store could not complete the write.
        """
        text = self._validate_text(text)
        sender_id = self._validate_user_id(sender_id, "sender_id")
        recipient_id = self._validate_user_id(recipient_id, "recipient_id")
        if sender_id == recipient_id:
            raise ValidationError("Cannot send a message to yourself")

        if self.users.get(recipient_id) is None:
            raise NotFoundError("Recipient not found")
        if self.users.get(sender_id) is None:
            raise NotFoundError("Sender not found")

        try:
            with self.locks.hold(sender_id, recipient_id):
                conversation = lock_conversation(self.db, sender_id, recipient_id)
                if conversation is None:
                    conversation = self._create_conversation(sender_id, recipient_id)

                message = Message(
                    conversation_id=conversation.id,
                    sender_id=sender_id,
                    text=text,
                    created_at=utcnow(),
                    read=False,
                )
                self.db.add(message)
                self.db.flush()

                counter = getattr(Conversation, conversation.unread_attribute(recipient_id))
                values: dict[object, object] = {counter: counter + 1}
                if conversation.is_newer_than_cached(message.created_at):
                    values[Conversation.last_message_id] = message.id
                    values[Conversation.last_message_text] = text
                    values[Conversation.last_message_at] = message.created_at

                self.db.execute(
                    update(Conversation)
                    .where(Conversation.id == conversation.id)
                    .values(values)
                    .execution_options(synchronize_session=False)
                )
                conversation_id = conversation.id
                self.db.expire(conversation)
                message_id = message.id
                self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            logger.warning(
                "Conflicting write while sending from %s to %s: %s", sender_id, recipient_id, err
            )
            raise TransientError("Conversation was modified concurrently, please resend") from err
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error(
                "Failed to store message from %s to %s", sender_id, recipient_id, exc_info=True
            )
            raise TransientError("Message store unavailable") from err

        logger.info(
            "Message %s sent in conversation %s by %s", message_id, conversation_id, sender_id
        )
        return SendResult(message=message, conversation_id=conversation_id)

    def _create_conversation(self, user_a: str, user_b: str) -> Conversation:
        low, high = canonical_pair(user_a, user_b)
        conversation = Conversation(
            user_low_id=low,
            user_high_id=high,
            unread_low=0,
            unread_high=0,
        )
        self.db.add(conversation)
        self.db.flush()
        logger.info("Created conversation %s between %s and %s", conversation.id, low, high)
        return conversation

    def mark_read(self, requester_id: str, conversation_id: int) -> int:
        """Mark every message the other participant sent as read.

        Idempotent: a repeated call changes nothing and returns 0.

        Returns:
            Number of messages that transitioned to read.

        Raises:
            NotFoundError: Unknown conversation.
            ForbiddenError: ``requester_id`` is not a participant.
        """
        requester_id = self._validate_user_id(requester_id, "requester_id")
        conversation_id = self._validate_conversation_id(conversation_id)

        conversation = self._load_conversation(conversation_id)
        if not conversation.has_participant(requester_id):
            raise ForbiddenError("You are not a participant of this conversation")

        try:
            with self.locks.hold(*conversation.participants):
                conversation = lock_conversation(self.db, *conversation.participants)
                if conversation is None:  # pragma: no cover - conversations are never deleted
                    raise NotFoundError("Conversation not found")

                result = self.db.execute(
                    update(Message)
                    .where(
                        Message.conversation_id == conversation.id,
                        Message.sender_id != requester_id,
                        Message.read.is_(False),
                    )
                    .values(read=True)
                    .execution_options(synchronize_session=False)
                )
                marked = int(result.rowcount or 0)

                if marked or conversation.unread_for(requester_id):
                    counter = getattr(Conversation, conversation.unread_attribute(requester_id))
                    self.db.execute(
                        update(Conversation)
                        .where(Conversation.id == conversation.id)
                        .values({counter: 0})
                        .execution_options(synchronize_session=False)
                    )
                    self.db.expire(conversation)
                self.db.commit()
        except MessagingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error(
                "Failed to mark conversation %s read for %s",
                conversation_id,
                requester_id,
                exc_info=True,
            )
            raise TransientError("Message store unavailable") from err

        if marked:
            logger.info(
                "Marked %d messages read in conversation %s for %s",
                marked,
                conversation_id,
                requester_id,
            )
        return marked

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_conversation(self, conversation_id: int) -> Conversation:
        try:
            conversation = self.db.get(Conversation, conversation_id, populate_existing=True)
        except SQLAlchemyError as err:
            raise TransientError("Message store unavailable") from err
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    def find_conversation(self, requester_id: str, other_user_id: str) -> int | None:
        """Return the id of the conversation between two users, if one exists."""
        requester_id = self._validate_user_id(requester_id, "requester_id")
        other_user_id = self._validate_user_id(other_user_id, "other_user_id")
        try:
            conversation = find_conversation(self.db, requester_id, other_user_id)
        except SQLAlchemyError as err:
            raise TransientError("Message store unavailable") from err
        return conversation.id if conversation else None

    def get_thread(self, requester_id: str, other_user_id: str) -> Thread:
        """Return the conversation between two users in server order.

        Messages are ordered by ``created_at`` then ``id``. A pair that has
        never exchanged a message yields an empty thread rather than an error.
        """
        requester_id = self._validate_user_id(requester_id, "requester_id")
        other_user_id = self._validate_user_id(other_user_id, "other_user_id")

        try:
            conversation = find_conversation(self.db, requester_id, other_user_id)
            if conversation is None:
                return Thread(conversation_id=None, entries=[])

            messages = (
                self.db.execute(
                    select(Message)
                    .where(Message.conversation_id == conversation.id)
                    .order_by(Message.created_at.asc(), Message.id.asc())
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as err:
            raise TransientError("Message store unavailable") from err

        entries = [
            ThreadEntry(message=message, sent_by_me=message.sender_id == requester_id)
            for message in messages
        ]
        return Thread(conversation_id=conversation.id, entries=entries)

    def list_conversations(self, requester_id: str) -> list[ConversationSummary]:
        """Return the requester's conversations, most recently active first."""
        requester_id = self._validate_user_id(requester_id, "requester_id")

        stmt = (
            select(Conversation)
            .where(
                or_(
                    Conversation.user_low_id == requester_id,
                    Conversation.user_high_id == requester_id,
                ),
                Conversation.last_message_at.is_not(None),
            )
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .execution_options(populate_existing=True)
        )
        try:
            conversations = self.db.execute(stmt).unique().scalars().all()
        except SQLAlchemyError as err:
            raise TransientError("Message store unavailable") from err

        return [
            ConversationSummary(
                conversation_id=conversation.id,
                other_user=conversation.other_participant(requester_id),
                last_message_id=conversation.last_message_id,
                last_message_text=conversation.last_message_text,
                last_message_at=ensure_utc(conversation.last_message_at),
                unread_count=conversation.unread_for(requester_id),
            )
            for conversation in conversations
        ]

    def get_unread_total(self, requester_id: str) -> int:
        """Return the requester's unread messages summed over all conversations."""
        requester_id = self._validate_user_id(requester_id, "requester_id")

        own_counter = case(
            (Conversation.user_low_id == requester_id, Conversation.unread_low),
            else_=Conversation.unread_high,
        )
        stmt = select(func.coalesce(func.sum(own_counter), 0)).where(
            or_(
                Conversation.user_low_id == requester_id,
                Conversation.user_high_id == requester_id,
            )
        )
        try:
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as err:
            raise TransientError("Message store unavailable") from err

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def audit_index(self) -> list[IndexDrift]:
        """Compare every cached conversation row with a recount of its messages."""
        conversations = (
            self.db.execute(
                select(Conversation)
                .order_by(Conversation.id)
                .execution_options(populate_existing=True)
            )
            .unique()
            .scalars()
            .all()
        )
        drifts: list[IndexDrift] = []
        for conversation in conversations:
            cached = snapshot(conversation)
            actual = recount(self.db, conversation)
            if cached != actual:
                drifts.append(
                    IndexDrift(conversation_id=conversation.id, cached=cached, actual=actual)
                )
        return drifts

    def rebuild_conversation(self, conversation_id: int) -> IndexDrift | None:
        """Recompute one conversation row from the message store.

        Returns:
            The drift that was repaired, or None if the row was already correct.
        """
        conversation_id = self._validate_conversation_id(conversation_id)
        conversation = self._load_conversation(conversation_id)

        with self.locks.hold(*conversation.participants):
            conversation = lock_conversation(self.db, *conversation.participants)
            if conversation is None:  # pragma: no cover - conversations are never deleted
                raise NotFoundError("Conversation not found")
            cached = snapshot(conversation)
            actual = recount(self.db, conversation)
            if cached == actual:
                self.db.rollback()
                return None
            apply_snapshot(conversation, actual)
            self.db.commit()

        logger.warning(
            "Rebuilt conversation %s index: cached=%s actual=%s", conversation_id, cached, actual
        )
        return IndexDrift(conversation_id=conversation_id, cached=cached, actual=actual)
