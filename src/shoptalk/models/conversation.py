"""Conversation index model: one row per unique pair of users."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shoptalk.db.session import Base
from shoptalk.db.time import ensure_utc, utcnow

from .user import User


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Return the participant pair in storage order, independent of who initiates."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class Conversation(Base):
    """Two-party conversation with a denormalized summary of its messages.

    ``last_message_*`` and the two ``unread_*`` counters are a materialized view
    over the ``messages`` table. ``unread_low`` counts messages sent by
    ``user_high_id`` that ``user_low_id`` has not read, and vice versa. Writers
    must update them in the same transaction as the message rows they summarize.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_conversations_canonical_pair"),
        CheckConstraint("unread_low >= 0 AND unread_high >= 0", name="ck_conversations_unread"),
        Index("ix_conversations_user_low", "user_low_id"),
        Index("ix_conversations_user_high", "user_high_id"),
        Index("ix_conversations_last_message_at", "last_message_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_low_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    user_high_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)

    last_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_message_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    unread_low: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unread_high: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user_low: Mapped[User] = relationship(
        "User", foreign_keys=[user_low_id], lazy="joined", innerjoin=True
    )
    user_high: Mapped[User] = relationship(
        "User", foreign_keys=[user_high_id], lazy="joined", innerjoin=True
    )

    @property
    def participants(self) -> tuple[str, str]:
        """Return both participant ids in canonical order."""
        return (self.user_low_id, self.user_high_id)

    def has_participant(self, user_id: str) -> bool:
        """Return True if ``user_id`` is one of the two participants."""
        return user_id in self.participants

    def other_participant_id(self, user_id: str) -> str:
        """Return the id of the participant that is not ``user_id``."""
        if user_id == self.user_low_id:
            return self.user_high_id
        if user_id == self.user_high_id:
            return self.user_low_id
        raise ValueError(f"User {user_id} is not a participant of conversation {self.id}")

    def other_participant(self, user_id: str) -> User:
        """Return the profile of the participant that is not ``user_id``."""
        if self.other_participant_id(user_id) == self.user_high_id:
            return self.user_high
        return self.user_low

    def unread_attribute(self, user_id: str) -> str:
        """Return the counter attribute that tracks unread messages for ``user_id``."""
        if user_id == self.user_low_id:
            return "unread_low"
        if user_id == self.user_high_id:
            return "unread_high"
        raise ValueError(f"User {user_id} is not a participant of conversation {self.id}")

    def unread_for(self, user_id: str) -> int:
        """Return the cached unread count for ``user_id``."""
        return int(getattr(self, self.unread_attribute(user_id)) or 0)

    @property
    def unread_counts(self) -> dict[str, int]:
        """Return the cached unread counters keyed by participant id."""
        return {
            self.user_low_id: int(self.unread_low or 0),
            self.user_high_id: int(self.unread_high or 0),
        }

    def is_newer_than_cached(self, created_at: datetime) -> bool:
        """Return True if a message stamped ``created_at`` should replace the cached last message."""
        cached = ensure_utc(self.last_message_at)
        return cached is None or ensure_utc(created_at) >= cached
