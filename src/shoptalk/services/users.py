"""User lookup capability consumed by the messaging service."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from shoptalk.models import User


class UserDirectory(Protocol):
    """Resolves user ids issued by the identity subsystem."""

    def get(self, user_id: str) -> User | None:
        """Return the user with ``user_id`` or None."""
        ...


class SqlUserDirectory:
    """User directory backed by the local ``users`` reference table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def ensure_user(
        self,
        user_id: str,
        *,
        display_name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        """Create or refresh the profile mirror for ``user_id``.

        Does not commit; callers own the transaction.
        """
        user = self.db.get(User, user_id)
        if user is None:
            user = User(id=user_id, display_name=display_name, avatar_url=avatar_url)
            self.db.add(user)
        else:
            if display_name is not None:
                user.display_name = display_name
            if avatar_url is not None:
                user.avatar_url = avatar_url
        self.db.flush()
        return user
