"""Helpers that keep the conversation index consistent with the message store.

The conversation row caches the latest message and both unread counters. The
contract is that these fields always equal what :func:`recount` derives from
the ``messages`` table. Writers hold the per-pair lock from
:class:`ConversationLocks` and the row lock from :func:`lock_conversation`
while they touch a conversation, so concurrent sends and reads for the same
pair are applied one after another.
"""

from __future__ import annotations

import threading
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from shoptalk.db.time import ensure_utc
from shoptalk.models import Conversation, Message, canonical_pair


class ConversationLocks:
    """Striped in-process locks, one stripe per canonical participant pair.

    Two pairs may share a stripe, which only serializes more than necessary.
    """

    def __init__(self, stripes: int = 256) -> None:
        self._locks = [threading.Lock() for _ in range(max(1, stripes))]

    def _stripe(self, pair: tuple[str, str]) -> threading.Lock:
        key = f"{pair[0]}:{pair[1]}".encode()
        return self._locks[zlib.crc32(key) % len(self._locks)]

    @contextmanager
    def hold(self, user_a: str, user_b: str) -> Iterator[None]:
        """Hold the writer lock for the pair ``(user_a, user_b)``."""
        lock = self._stripe(canonical_pair(user_a, user_b))
        with lock:
            yield


# Shared by every MessagingService in the process.
conversation_locks = ConversationLocks()


@dataclass(frozen=True)
class IndexSnapshot:
    """Conversation summary derived from the message store."""

    unread_low: int
    unread_high: int
    last_message_id: int | None
    last_message_text: str | None
    last_message_at: datetime | None


@dataclass(frozen=True)
class IndexDrift:
    """Difference between a cached conversation row and its recomputation."""

    conversation_id: int
    cached: IndexSnapshot
    actual: IndexSnapshot


def lock_conversation(db: Session, user_a: str, user_b: str) -> Conversation | None:
    """Load the conversation for a pair with a row lock held until commit.

    Backends without ``FOR UPDATE`` (SQLite) ignore the lock clause; there the
    in-process :class:`ConversationLocks` provides the serialization.
    """
    low, high = canonical_pair(user_a, user_b)
    stmt = (
        select(Conversation)
        .where(Conversation.user_low_id == low, Conversation.user_high_id == high)
        .with_for_update(of=Conversation)
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).unique().scalar_one_or_none()


def find_conversation(db: Session, user_a: str, user_b: str) -> Conversation | None:
    """Return the conversation for a pair without locking."""
    low, high = canonical_pair(user_a, user_b)
    stmt = select(Conversation).where(
        Conversation.user_low_id == low,
        Conversation.user_high_id == high,
    )
    return db.execute(stmt).unique().scalar_one_or_none()


def snapshot(conversation: Conversation) -> IndexSnapshot:
    """Return the cached summary stored on ``conversation``."""
    return IndexSnapshot(
        unread_low=int(conversation.unread_low or 0),
        unread_high=int(conversation.unread_high or 0),
        last_message_id=conversation.last_message_id,
        last_message_text=conversation.last_message_text,
        last_message_at=ensure_utc(conversation.last_message_at),
    )


def _count_unread(db: Session, conversation_id: int, reader_id: str) -> int:
    stmt = select(func.count(Message.id)).where(
        and_(
            Message.conversation_id == conversation_id,
            Message.sender_id != reader_id,
            Message.read.is_(False),
        )
    )
    return int(db.execute(stmt).scalar_one())


def recount(db: Session, conversation: Conversation) -> IndexSnapshot:
    """Recompute the conversation summary from its message rows."""
    latest = db.execute(
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    ).scalar_one_or_none()

    return IndexSnapshot(
        unread_low=_count_unread(db, conversation.id, conversation.user_low_id),
        unread_high=_count_unread(db, conversation.id, conversation.user_high_id),
        last_message_id=latest.id if latest else None,
        last_message_text=latest.text if latest else None,
        last_message_at=ensure_utc(latest.created_at) if latest else None,
    )


def apply_snapshot(conversation: Conversation, values: IndexSnapshot) -> None:
    """Overwrite the cached summary on ``conversation``."""
    conversation.unread_low = values.unread_low
    conversation.unread_high = values.unread_high
    conversation.last_message_id = values.last_message_id
    conversation.last_message_text = values.last_message_text
    conversation.last_message_at = values.last_message_at
