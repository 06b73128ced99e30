"""Client store for chats and the optimistic message send protocol."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from cardstack.client.api_client import ApiError, CardStackClient
from cardstack.client.events import EntityEvents
from cardstack.client.state import Notifier, StateContainer, loading_id
from cardstack.models.entities import (
    DEFAULT_CHAT_TITLE,
    Chat,
    ChatWithMessages,
    Message,
    SendMessageResponse,
    chat_title_from_message,
)


@dataclass(frozen=True)
class ChatState:
    """Snapshot of the chat store."""

    chats: list[Chat] = field(default_factory=list)
    chats_loaded: bool = False
    chats_loading: bool = False

    current_chat: ChatWithMessages | None = None
    current_chat_loading: bool = False


class ChatStore(StateContainer[ChatState]):
    """Chat list, the open chat and its message exchange.

    Args:
        api: Client used for every request.
        events: Optional channel for entities the assistant created.
        notifier: Optional callback for transient failure notices.
    """

    def __init__(
        self,
        api: CardStackClient,
        events: EntityEvents | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        super().__init__(ChatState, notifier)
        self._api = api
        self._events = events

    # =========================================================================
    # Chat list
    # =========================================================================

    async def fetch_chats(self) -> None:
        if self.state.chats_loading:
            return

        self.set_state(chats_loading=True)
        try:
            chats = await self._api.list_chats()
        except ApiError as e:
            self.set_state(chats_loading=False)
            self._report_failure("Failed to fetch chats", e)
            return

        self.set_state(chats=chats, chats_loaded=True, chats_loading=False)

    async def ensure_chats_loaded(self) -> None:
        if not self.state.chats_loaded and not self.state.chats_loading:
            await self.fetch_chats()

    async def create_chat(
        self, chat_id: str | None = None, title: str | None = None
    ) -> Chat | None:
        """Create a chat on the server and prepend it to the list."""
        try:
            chat = await self._api.create_chat(chat_id, title)
        except ApiError as e:
            self._report_failure("Failed to create chat", e)
            return None

        self.set_state(chats=[chat, *self.state.chats])
        return chat

    async def delete_chat(self, chat_id: str) -> bool:
        original_chats = self.state.chats
        self.set_state(chats=[c for c in original_chats if c.id != chat_id])

        try:
            await self._api.delete_chat(chat_id)
        except ApiError as e:
            self.set_state(chats=original_chats)
            self._report_failure("Failed to delete chat", e)
            return False
        return True

    async def update_chat_title(self, chat_id: str, title: str) -> bool:
        original_chats = self.state.chats
        self.set_state(
            chats=[
                c.model_copy(update={"title": title}) if c.id == chat_id else c
                for c in original_chats
            ]
        )

        try:
            await self._api.update_chat_title(chat_id, title)
        except ApiError as e:
            self.set_state(chats=original_chats)
            self._report_failure("Failed to update chat title", e)
            return False
        return True

    # =========================================================================
    # Current chat
    # =========================================================================

    async def fetch_chat(self, chat_id: str) -> None:
        """Open a chat with its messages. Does nothing if it is already open."""
        current = self.state.current_chat
        if current is not None and current.id == chat_id:
            return

        self.set_state(current_chat_loading=True)
        try:
            chat = await self._api.get_chat(chat_id)
        except ApiError as e:
            self.set_state(current_chat=None, current_chat_loading=False)
            self._report_failure("Failed to fetch chat", e)
            return

        self.set_state(current_chat=chat, current_chat_loading=False)

    def set_current_chat(self, chat: ChatWithMessages | None) -> None:
        self.set_state(current_chat=chat)

    def clear_current_chat(self) -> None:
        self.set_state(current_chat=None)

    async def send_message(self, chat_id: str, content: str) -> bool:
        """Send a user message and reconcile the open chat with the reply.

        Two placeholders (the user's message and an empty ``loading-`` reply)
        are shown while the request is in flight. On success they are
        replaced by the two persisted messages; on failure the chat is put
        back exactly as it was.

        Returns:
            False without any change when ``chat_id`` is not the open chat.
        """
        previous = self.state.current_chat
        if previous is None or previous.id != chat_id:
            return False

        now = datetime.now(UTC)
        user_placeholder = Message(
            id=str(uuid.uuid4()), chat_id=chat_id, role="user", content=content, created_at=now
        )
        reply_placeholder = Message(
            id=loading_id(), chat_id=chat_id, role="assistant", content="", created_at=now
        )
        self.set_state(
            current_chat=previous.model_copy(
                update={"messages": [*previous.messages, user_placeholder, reply_placeholder]}
            )
        )

        try:
            response = await self._api.send_message(chat_id, content)
        except ApiError as e:
            current = self.state.current_chat
            if current is not None and current.id == chat_id:
                self.set_state(current_chat=previous)
            self._report_failure("Failed to send message", e)
            return False

        placeholder_ids = {user_placeholder.id, reply_placeholder.id}
        current = self.state.current_chat
        if current is not None and current.id == chat_id:
            kept = [m for m in current.messages if m.id not in placeholder_ids]
            self.set_state(
                current_chat=current.model_copy(
                    update={
                        "messages": [*kept, response.user_message, response.assistant_message]
                    }
                )
            )

        self._touch_chat(chat_id, response)
        if self._events is not None:
            self._events.emit_created(response.created_entities)
        return True

    def _touch_chat(self, chat_id: str, response: SendMessageResponse) -> None:
        """Move a chat that just received messages to the top of the list."""
        chat = next((c for c in self.state.chats if c.id == chat_id), None)
        if chat is None:
            return

        update = {"updated_at": response.assistant_message.created_at}
        if chat.title == DEFAULT_CHAT_TITLE:
            update["title"] = chat_title_from_message(response.user_message.content)
        refreshed = chat.model_copy(update=update)

        current = self.state.current_chat
        changes = {"chats": [refreshed, *(c for c in self.state.chats if c.id != chat_id)]}
        if current is not None and current.id == chat_id and current.title == DEFAULT_CHAT_TITLE:
            changes["current_chat"] = current.model_copy(update={"title": refreshed.title})
        self.set_state(**changes)
