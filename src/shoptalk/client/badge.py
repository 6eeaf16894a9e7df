"""Background polling of the signed-in user's unread total.

``UnreadBadgePoller`` follows the ``AuthSession``: it starts when a user logs
in, is cancelled on logout, and owns the one cached unread value that badge
surfaces read. It never writes anything on the server.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from shoptalk.errors import MessagingError, TransientError, UnauthorizedError

from .api import MessagingApiClient
from .config import client_settings
from .session import AuthSession

logger = logging.getLogger(__name__)

BadgeListener = Callable[[int], None]


class UnreadBadgePoller:
    """Periodically refreshes and republishes the unread message total."""

    def __init__(
        self,
        api: MessagingApiClient,
        session: AuthSession,
        interval_seconds: float | None = None,
        display_cap: int | None = None,
    ) -> None:
        self.api = api
        self.session = session
        self.interval_seconds = max(
            0.01,
            float(interval_seconds or client_settings.badge_poll_interval_seconds),
        )
        self.display_cap = display_cap or client_settings.badge_display_cap
        self._count = 0
        self._last_fetched_at: datetime | None = None
        self._listeners: list[BadgeListener] = []
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._unsubscribe_auth = session.subscribe(self._on_auth_change)

    @property
    def count(self) -> int:
        return self._count

    @property
    def last_fetched_at(self) -> datetime | None:
        return self._last_fetched_at

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def display_text(self) -> str:
        """Badge label: empty at zero, capped as ``99+``."""
        if self._count <= 0:
            return ""
        if self._count > self.display_cap:
            return f"{self.display_cap}+"
        return str(self._count)

    def subscribe(self, listener: BadgeListener) -> Callable[[], None]:
        """Call ``listener`` with every published value; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            listener(self._count)

    async def _on_auth_change(self, authenticated: bool) -> None:
        if authenticated:
            await self.start()
        else:
            await self.stop()

    async def start(self) -> None:
        """Start the polling loop if a user is signed in and it is not running."""
        if not self.session.is_authenticated or self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling loop and forget the cached value."""
        task, self._task = self._task, None
        if task is not None:
            self._stopping.set()
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._count or self._last_fetched_at is not None:
            self._count = 0
            self._last_fetched_at = None
            self._publish()

    async def close(self) -> None:
        """Detach from the session and stop polling."""
        self._unsubscribe_auth()
        await self.stop()

    async def refresh(self) -> int:
        """Fetch the unread total now and publish it.

        A transient failure keeps the previous value. Other errors propagate.
        """
        try:
            count = await self.api.get_unread_count()
        except TransientError as exc:
            logger.warning("Unread count refresh failed, keeping %d: %s", self._count, exc.message)
            return self._count

        self._count = count
        self._last_fetched_at = datetime.now(UTC)
        self._publish()
        return count

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.refresh()
            except UnauthorizedError as exc:
                logger.warning("Unread badge polling stopped: %s", exc.message)
                return
            except MessagingError as exc:
                logger.warning("UnreadBadgePoller encountered an error: %s", exc.message)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
