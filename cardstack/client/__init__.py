"""Client-side stores for CardStack with optimistic updates."""

from cardstack.client.api_client import ApiError, CardStackClient
from cardstack.client.app_store import AppState, AppStore
from cardstack.client.chat_store import ChatState, ChatStore
from cardstack.client.events import EntityEvents

__all__ = [
    "ApiError",
    "AppState",
    "AppStore",
    "CardStackClient",
    "ChatState",
    "ChatStore",
    "EntityEvents",
]
