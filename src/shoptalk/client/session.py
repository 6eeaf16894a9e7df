"""Authentication state shared by the client-side messaging components.

The identity subsystem calls ``login`` and ``logout``; the API client reads
the bearer token and the badge poller follows the login state through
``subscribe``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)

AuthListener = Callable[[bool], Awaitable[None] | None]


class AuthStatus(Enum):
    """Whether a user is currently signed in."""

    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class AuthSession:
    """Bearer token and user id of the signed-in user, if any."""

    def __init__(self) -> None:
        self._token: str | None = None
        self._user_id: str | None = None
        self._listeners: list[AuthListener] = []

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def status(self) -> AuthStatus:
        return AuthStatus.SIGNED_IN if self.is_authenticated else AuthStatus.SIGNED_OUT

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener`` for login state changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def login(self, token: str, user_id: str) -> None:
        """Record a fresh credential and notify listeners.

        A refreshed token for the same user is silent. Switching to another
        user without a logout is reported as a logout followed by a login, so
        listeners drop state that belonged to the previous user.
        """
        if not token or not user_id:
            raise ValueError("token and user_id are required")
        previous_user = self._user_id if self.is_authenticated else None
        if previous_user is not None and previous_user != user_id:
            logger.info("Switching signed-in user from %s to %s", previous_user, user_id)
            await self.logout()
            previous_user = None
        self._token = token
        self._user_id = user_id
        if previous_user is None:
            await self._notify(True)

    async def logout(self) -> None:
        """Drop the credential and notify listeners."""
        if not self.is_authenticated:
            return
        self._token = None
        self._user_id = None
        await self._notify(False)

    async def _notify(self, authenticated: bool) -> None:
        for listener in list(self._listeners):
            result = listener(authenticated)
            if asyncio.iscoroutine(result):
                await result
        logger.debug("Auth state changed: authenticated=%s", authenticated)
