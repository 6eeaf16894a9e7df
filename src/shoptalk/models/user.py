"""SQLAlchemy model for users referenced by conversations."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shoptalk.db.session import Base
from shoptalk.db.time import utcnow


def new_user_id() -> str:
    """Return a fresh opaque user identifier."""
    return uuid.uuid4().hex


class User(Base):
    """Public profile of a user as known to the messaging engine.

    Identity and accounts are owned elsewhere; this table only mirrors the
    fields conversation lists need to render the other participant.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_user_id)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
