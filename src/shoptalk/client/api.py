"""HTTP client for the messaging API.

``MessagingApiClient`` is what client screens call. It attaches the bearer
token from an ``AuthSession``, parses responses with the API schemas and turns
every failure into one of the ``shoptalk.errors`` types:

- transport failures and 5xx answers become ``TransientError``
- 400/422 become ``ValidationError``, 401 ``UnauthorizedError``,
  403 ``ForbiddenError`` and 404 ``NotFoundError``
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from shoptalk.errors import MessagingError, TransientError, UnauthorizedError, error_for_status
from shoptalk.schemas import (
    ConversationListResponse,
    ConversationLookupResponse,
    ConversationOut,
    MarkReadResponse,
    SendMessageRequest,
    SendMessageResponse,
    ThreadResponse,
    UnreadCountResponse,
)

from .config import ClientSettings, client_settings
from .session import AuthSession

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class ApiClientConfig:
    """Immutable configuration for the API client."""

    base_url: str
    api_prefix: str
    timeout_seconds: float

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> ApiClientConfig:
        return cls(
            base_url=settings.api_base_url,
            api_prefix=settings.api_prefix.rstrip("/"),
            timeout_seconds=settings.client_timeout_seconds,
        )


class MessagingApiClient:
    """Async client for the ``/messages`` endpoints."""

    def __init__(
        self,
        session: AuthSession,
        config: ApiClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self.config = config or ApiClientConfig.from_settings(client_settings)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        token = self.session.token
        if not token:
            raise UnauthorizedError("Not signed in")
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        headers = self._auth_headers() if authenticated else {}
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, json=json_data, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Request %s %s failed: %s", method, path, exc)
            raise TransientError("Messaging service unreachable") from exc

        if response.is_success:
            return response

        detail = _error_detail(response)
        logger.info("Request %s %s returned %s: %s", method, path, response.status_code, detail)
        raise error_for_status(response.status_code, detail)

    def _path(self, suffix: str) -> str:
        return f"{self.config.api_prefix}/messages{suffix}"

    @staticmethod
    def _parse(response: httpx.Response, model: type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, SchemaValidationError) as exc:
            raise TransientError("Malformed response from messaging service") from exc

    # ------------------------------------------------------------------
    # Messaging operations
    # ------------------------------------------------------------------

    async def send_message(self, recipient_id: str, text: str) -> SendMessageResponse:
        body = SendMessageRequest(recipient_id=recipient_id, text=text)
        response = await self._request(
            "POST", self._path("/send"), json_data=body.model_dump(by_alias=True)
        )
        return self._parse(response, SendMessageResponse)

    async def get_thread(self, other_user_id: str) -> ThreadResponse:
        response = await self._request("GET", self._path(f"/thread/{other_user_id}"))
        return self._parse(response, ThreadResponse)

    async def find_conversation(self, other_user_id: str) -> int | None:
        response = await self._request("GET", self._path(f"/conversation/{other_user_id}"))
        return self._parse(response, ConversationLookupResponse).conversation_id

    async def mark_read(self, conversation_id: int) -> MarkReadResponse:
        response = await self._request("PUT", self._path(f"/read/{conversation_id}"))
        return self._parse(response, MarkReadResponse)

    async def list_conversations(self) -> list[ConversationOut]:
        response = await self._request("GET", self._path("/conversations"))
        return self._parse(response, ConversationListResponse).conversations

    async def get_unread_count(self) -> int:
        response = await self._request("GET", self._path("/unread/count"))
        return self._parse(response, UnreadCountResponse).count

    async def check_connectivity(self) -> bool:
        """Return True if the service answers its health check."""
        try:
            await self._request("GET", "/health", authenticated=False)
        except MessagingError:
            return False
        return True

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return response.reason_phrase
