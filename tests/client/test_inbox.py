"""Tests for the inbox loader."""

import pytest

from shoptalk.client import load_inbox
from shoptalk.errors import TransientError
from tests.client.fakes import BARBER

CONVERSATIONS = "/api/v1/messages/conversations"


@pytest.mark.asyncio
async def test_load_inbox(api, server) -> None:
    server.reply(
        "GET",
        CONVERSATIONS,
        json={
            "conversations": [
                {
                    "id": 1,
                    "participant": {"id": BARBER, "displayName": "Ben Barber"},
                    "lastMessageId": 3,
                    "lastMessageText": "see you at 3",
                    "lastMessageAt": "2026-10-19T10:00:00Z",
                    "unreadCount": 2,
                }
            ]
        },
    )

    inbox = await load_inbox(api)

    assert not inbox.failed
    assert [c.participant.display_name for c in inbox.conversations] == ["Ben Barber"]
    assert inbox.conversations[0].unread_count == 2


@pytest.mark.asyncio
async def test_load_inbox_degrades_to_empty(api, server) -> None:
    server.reply("GET", CONVERSATIONS, 503, {"detail": "Message store unavailable"})

    inbox = await load_inbox(api)

    assert inbox.failed
    assert inbox.conversations == []
    assert isinstance(inbox.error, TransientError)
