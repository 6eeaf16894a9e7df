"""Client-side messaging components used by the app screens."""

from .api import ApiClientConfig, MessagingApiClient
from .badge import UnreadBadgePoller
from .config import ClientSettings, client_settings
from .inbox import InboxView, load_inbox
from .reconcile import ChatThread, DeliveryState, LocalMessage
from .session import AuthSession, AuthStatus

__all__ = [
    "ApiClientConfig", "MessagingApiClient", "UnreadBadgePoller", "ClientSettings",
    "client_settings", "InboxView", "load_inbox", "ChatThread", "DeliveryState",
    "LocalMessage", "AuthSession", "AuthStatus",
]
