"""Client components driving the real API in-process."""

import httpx
import pytest
import pytest_asyncio

from shoptalk.client import (
    ApiClientConfig,
    AuthSession,
    ChatThread,
    DeliveryState,
    MessagingApiClient,
    UnreadBadgePoller,
    load_inbox,
)
from shoptalk.core.security import create_access_token

CONFIG = ApiClientConfig(base_url="http://test", api_prefix="/api/v1", timeout_seconds=10.0)


async def _signed_in_client(app, user_id):
    session = AuthSession()
    await session.login(create_access_token(user_id), user_id)
    return MessagingApiClient(session, CONFIG, transport=httpx.ASGITransport(app=app))


@pytest_asyncio.fixture()
async def clients(app, test_user, other_user):
    ana = await _signed_in_client(app, test_user.id)
    ben = await _signed_in_client(app, other_user.id)
    try:
        yield ana, ben
    finally:
        await ana.close()
        await ben.close()


@pytest.mark.asyncio
async def test_conversation_between_client_and_barber(clients, test_user, other_user) -> None:
    ana, ben = clients

    ana_thread = ChatThread(ana, other_user.id)
    assert await ana_thread.load() == []

    pending = ana_thread.submit("Hi! Any openings this afternoon?")
    assert pending.state is DeliveryState.PENDING
    confirmed = await ana_thread.deliver(pending)
    assert confirmed.state is DeliveryState.CONFIRMED
    assert isinstance(confirmed.server_id, int)
    assert ana_thread.conversation_id is not None

    ben_badge = UnreadBadgePoller(ben, ben.session, interval_seconds=60)
    assert await ben_badge.refresh() == 1

    inbox = await load_inbox(ben)
    assert [c.participant.id for c in inbox.conversations] == [test_user.id]
    assert inbox.conversations[0].unread_count == 1

    ben_thread = ChatThread(ben, test_user.id, badge=ben_badge)
    messages = await ben_thread.load()
    assert [m.server_id for m in messages] == [confirmed.server_id]
    assert messages[0].sent_by_me is False
    assert ben_badge.count == 0

    reply = await ben_thread.send("Yes, 4pm is free")
    assert reply.state is DeliveryState.CONFIRMED
    assert await ana.get_unread_count() == 1
    await ben_badge.close()


@pytest.mark.asyncio
async def test_rejected_send_fails_visibly(clients, test_user) -> None:
    ana, _ = clients
    thread = ChatThread(ana, "nobody-here")

    message = await thread.send("hello?")

    assert message.state is DeliveryState.FAILED
    assert message.error.status_code == 404
    assert thread.messages == [message]
