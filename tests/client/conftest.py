# tests/client/conftest.py
from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from shoptalk.client import AuthSession, MessagingApiClient
from tests.client.fakes import CONFIG, ME, FakeServer


@pytest.fixture()
def server() -> FakeServer:
    return FakeServer()


@pytest_asyncio.fixture()
async def auth_session() -> AuthSession:
    session = AuthSession()
    await session.login("token-for-ana", ME)
    return session


@pytest_asyncio.fixture()
async def api(server: FakeServer, auth_session: AuthSession):
    client = MessagingApiClient(auth_session, CONFIG, transport=httpx.MockTransport(server))
    try:
        yield client
    finally:
        await client.close()
