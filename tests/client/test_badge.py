"""Tests for the unread badge poller."""

import asyncio

import httpx
import pytest

from shoptalk.client import AuthSession, MessagingApiClient, UnreadBadgePoller
from tests.client.fakes import BARBER, CONFIG, ME

COUNT = "/api/v1/messages/unread/count"


def _counts(server, *values):
    replies = iter(values)

    def handler(request: httpx.Request) -> httpx.Response:
        value = next(replies, values[-1])
        if isinstance(value, str):
            # Error replies are given as status strings, e.g. "503".
            return httpx.Response(int(value), json={"detail": "error"})
        return httpx.Response(200, json={"count": value})

    server.on("GET", COUNT, handler)


async def _wait_for(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_refresh_caches_and_publishes(api, server, auth_session) -> None:
    _counts(server, 4)
    poller = UnreadBadgePoller(api, auth_session, interval_seconds=60)
    seen = []
    poller.subscribe(seen.append)

    assert poller.count == 0
    assert poller.last_fetched_at is None

    assert await poller.refresh() == 4
    assert poller.count == 4
    assert poller.last_fetched_at is not None
    assert seen == [4]
    await poller.close()


@pytest.mark.asyncio
async def test_transient_failure_keeps_last_value(api, server, auth_session) -> None:
    _counts(server, 3, "503")
    poller = UnreadBadgePoller(api, auth_session, interval_seconds=60)
    await poller.refresh()
    fetched_at = poller.last_fetched_at

    assert await poller.refresh() == 3
    assert poller.count == 3
    assert poller.last_fetched_at == fetched_at
    await poller.close()


@pytest.mark.asyncio
async def test_polls_on_interval_while_signed_in(api, server, auth_session) -> None:
    _counts(server, 1, 2, 5)
    poller = UnreadBadgePoller(api, auth_session, interval_seconds=0.02)

    await poller.start()
    await _wait_for(lambda: poller.count == 5)

    assert server.calls("GET", COUNT) >= 3
    await poller.close()
    assert not poller.running


@pytest.mark.asyncio
async def test_login_starts_and_logout_cancels(server) -> None:
    _counts(server, 7)
    session = AuthSession()
    api = MessagingApiClient(session, CONFIG, transport=httpx.MockTransport(server))
    poller = UnreadBadgePoller(api, session, interval_seconds=60)
    seen = []
    poller.subscribe(seen.append)

    assert not poller.running
    await session.login("token", ME)
    assert poller.running
    await _wait_for(lambda: poller.count == 7)

    # A second login with a refreshed token does not start another loop.
    task = poller._task
    await session.login("token-2", ME)
    assert poller._task is task

    await session.logout()
    assert not poller.running
    assert task.done()
    assert poller.count == 0
    assert poller.last_fetched_at is None
    assert seen == [7, 0]

    calls = server.calls("GET", COUNT)
    await asyncio.sleep(0.05)
    assert server.calls("GET", COUNT) == calls
    await poller.close()
    await api.close()


@pytest.mark.asyncio
async def test_start_without_session_does_nothing(server) -> None:
    session = AuthSession()
    api = MessagingApiClient(session, CONFIG, transport=httpx.MockTransport(server))
    poller = UnreadBadgePoller(api, session, interval_seconds=0.01)

    await poller.start()

    assert not poller.running
    assert server.requests == []
    await api.close()


@pytest.mark.asyncio
async def test_unauthorized_stops_polling(api, server, auth_session) -> None:
    _counts(server, "401")
    poller = UnreadBadgePoller(api, auth_session, interval_seconds=0.01)

    await poller.start()
    await _wait_for(lambda: not poller.running)

    assert server.calls("GET", COUNT) == 1
    await poller.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(("count", "label"), [(0, ""), (5, "5"), (99, "99"), (100, "99+")])
async def test_display_text(api, server, auth_session, count, label) -> None:
    _counts(server, count)
    poller = UnreadBadgePoller(api, auth_session, interval_seconds=60, display_cap=99)
    await poller.refresh()
    assert poller.display_text() == label
    await poller.close()


@pytest.mark.asyncio
async def test_switching_user_resets_and_refetches(server) -> None:
    _counts(server, 9, 2)
    session = AuthSession()
    api = MessagingApiClient(session, CONFIG, transport=httpx.MockTransport(server))
    poller = UnreadBadgePoller(api, session, interval_seconds=60)
    seen = []
    poller.subscribe(seen.append)

    await session.login("token-ana", ME)
    await _wait_for(lambda: poller.count == 9)
    first_task = poller._task

    await session.login("token-ben", BARBER)

    assert first_task.done()
    assert poller.running
    await _wait_for(lambda: poller.count == 2)
    assert seen == [9, 0, 2]
    assert server.calls("GET", COUNT) == 2
    assert server.requests[-1].headers["Authorization"] == "Bearer token-ben"
    await poller.close()
    await api.close()
