"""Tests for the chat store and its optimistic message exchange."""

import asyncio
import json

import httpx
import pytest

from cardstack.client import AppStore, ChatStore, EntityEvents
from cardstack.models.entities import Chat, ChatWithMessages, Deck, Message
from tests.test_app_store import CREATED_AT, deck_json, failing, make_api

EARLIER = "2026-03-01T09:00:00Z"


def chat(chat_id, title="New Chat", updated_at=EARLIER):
    return Chat(id=chat_id, title=title, created_at=EARLIER, updated_at=updated_at)


def open_chat(chat_id, title="New Chat", messages=()):
    return ChatWithMessages(
        id=chat_id, title=title, created_at=EARLIER, updated_at=EARLIER, messages=list(messages)
    )


def message_json(message_id, chat_id, role, content):
    return {
        "id": message_id,
        "chatId": chat_id,
        "role": role,
        "content": content,
        "createdAt": CREATED_AT,
    }


def exchange_json(chat_id, user_content, reply, created=None):
    return {
        "userMessage": message_json("m-user", chat_id, "user", user_content),
        "assistantMessage": message_json("m-reply", chat_id, "assistant", reply),
        "createdEntities": created or {"decks": [], "collections": [], "cards": []},
    }


@pytest.fixture
def notices():
    return []


class TestChatList:
    """Tests for listing, creating, renaming and deleting chats."""

    def test_fetch_chats(self):
        def handler(request):
            return httpx.Response(
                200,
                json=[{"id": "c1", "title": "Biology", "createdAt": EARLIER, "updatedAt": EARLIER}],
            )

        store = ChatStore(make_api(handler))

        asyncio.run(store.ensure_chats_loaded())

        assert [c.title for c in store.state.chats] == ["Biology"]
        assert store.state.chats_loaded

    def test_create_chat_prepends_after_response(self, notices):
        seen = []

        def handler(request):
            seen.append(list(store.state.chats))
            assert json.loads(request.content) == {"id": "client-id"}
            return httpx.Response(
                201,
                json={"id": "client-id", "title": "New Chat", "createdAt": CREATED_AT, "updatedAt": CREATED_AT},
            )

        store = ChatStore(make_api(handler), notifier=notices.append)
        store.set_state(chats=[chat("c0")])

        created = asyncio.run(store.create_chat("client-id"))

        # Not optimistic: nothing is inserted while the request is in flight
        assert [c.id for c in seen[0]] == ["c0"]
        assert created.id == "client-id"
        assert [c.id for c in store.state.chats] == ["client-id", "c0"]

    def test_rename_failure_restores_list(self, notices):
        chats = [chat("c1", "One"), chat("c2", "Two")]
        store = ChatStore(make_api(failing()), notifier=notices.append)
        store.set_state(chats=chats)

        assert asyncio.run(store.update_chat_title("c2", "Renamed")) is False
        assert store.state.chats == chats
        assert notices == ["Failed to update chat title"]

    def test_delete_chat(self):
        store = ChatStore(make_api(lambda r: httpx.Response(200, json={"success": True})))
        store.set_state(chats=[chat("c1"), chat("c2")])

        assert asyncio.run(store.delete_chat("c1"))
        assert [c.id for c in store.state.chats] == ["c2"]


class TestCurrentChat:
    """Tests for opening a chat."""

    def test_already_open_chat_is_not_refetched(self):
        requests = []
        store = ChatStore(make_api(lambda r: requests.append(r) or httpx.Response(500)))
        store.set_current_chat(open_chat("c1"))

        asyncio.run(store.fetch_chat("c1"))

        assert requests == []

    def test_fetch_failure_clears_current_chat(self, notices):
        store = ChatStore(make_api(failing(404, "Chat not found")), notifier=notices.append)
        store.set_current_chat(open_chat("c1"))

        asyncio.run(store.fetch_chat("c2"))

        assert store.state.current_chat is None
        assert not store.state.current_chat_loading
        assert notices == ["Failed to fetch chat"]


class TestSendMessage:
    """Tests for the optimistic send protocol."""

    def test_not_current_chat_is_refused(self):
        requests = []
        store = ChatStore(make_api(lambda r: requests.append(r) or httpx.Response(200)))
        store.set_current_chat(open_chat("c1"))

        assert asyncio.run(store.send_message("c2", "hi")) is False
        assert requests == []
        assert store.state.current_chat.messages == []

    def test_placeholders_shown_while_in_flight(self):
        in_flight = []

        def handler(request):
            in_flight.extend(store.state.current_chat.messages)
            return httpx.Response(200, json=exchange_json("c1", "hello", "Hi!"))

        store = ChatStore(make_api(handler))
        store.set_current_chat(open_chat("c1"))

        asyncio.run(store.send_message("c1", "hello"))

        user_placeholder, reply_placeholder = in_flight
        assert user_placeholder.role == "user"
        assert user_placeholder.content == "hello"
        assert reply_placeholder.role == "assistant"
        assert reply_placeholder.content == ""
        assert reply_placeholder.id.startswith("loading-")

    def test_success_replaces_placeholders(self):
        earlier = Message(id="m0", chat_id="c1", role="user", content="before", created_at=EARLIER)
        store = ChatStore(
            make_api(lambda r: httpx.Response(200, json=exchange_json("c1", "hello", "Hi!")))
        )
        store.set_current_chat(open_chat("c1", title="Greetings", messages=[earlier]))

        assert asyncio.run(store.send_message("c1", "hello"))
        assert [m.id for m in store.state.current_chat.messages] == ["m0", "m-user", "m-reply"]

    def test_success_moves_chat_to_top_and_retitles(self):
        content = "Quiz me on the bones of the human hand, starting with the carpals please"
        store = ChatStore(
            make_api(lambda r: httpx.Response(200, json=exchange_json("c2", content, "Sure")))
        )
        store.set_state(chats=[chat("c1", "Other"), chat("c2")])
        store.set_current_chat(open_chat("c2"))

        asyncio.run(store.send_message("c2", content))

        top = store.state.chats[0]
        assert top.id == "c2"
        assert top.title == content[:50] + "..."
        assert top.updated_at.isoformat().startswith("2026-03-01T12:00:00")
        assert store.state.current_chat.title == top.title

    def test_custom_title_is_kept(self):
        store = ChatStore(
            make_api(lambda r: httpx.Response(200, json=exchange_json("c1", "hello", "Hi")))
        )
        store.set_state(chats=[chat("c1", "Anatomy")])
        store.set_current_chat(open_chat("c1", title="Anatomy"))

        asyncio.run(store.send_message("c1", "hello"))

        assert store.state.chats[0].title == "Anatomy"

    def test_failure_restores_previous_chat(self, notices):
        earlier = Message(id="m0", chat_id="c1", role="user", content="before", created_at=EARLIER)
        previous = open_chat("c1", messages=[earlier])
        store = ChatStore(make_api(failing(500, "Failed to send message: timeout")), notifier=notices.append)
        store.set_state(chats=[chat("c1")])
        store.set_current_chat(previous)

        assert asyncio.run(store.send_message("c1", "hello")) is False
        assert store.state.current_chat == previous
        assert store.state.chats == [chat("c1")]
        assert notices == ["Failed to send message"]

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"ok": True}),
            httpx.Response(200, text="<html>gateway</html>"),
        ],
        ids=["wrong-shape", "not-json"],
    )
    def test_malformed_success_body_restores_previous_chat(self, notices, response):
        earlier = Message(id="m0", chat_id="c1", role="user", content="before", created_at=EARLIER)
        previous = open_chat("c1", messages=[earlier])
        store = ChatStore(make_api(lambda r: response), notifier=notices.append)
        store.set_current_chat(previous)

        assert asyncio.run(store.send_message("c1", "hello")) is False
        assert store.state.current_chat == previous
        assert [m.id for m in store.state.current_chat.messages] == ["m0"]
        assert notices == ["Failed to send message"]

    def test_failure_after_switching_chats_leaves_new_chat_alone(self):
        def handler(request):
            store.set_current_chat(open_chat("c2"))
            return httpx.Response(500, json={"detail": "boom"})

        store = ChatStore(make_api(handler))
        store.set_current_chat(open_chat("c1"))

        asyncio.run(store.send_message("c1", "hello"))

        assert store.state.current_chat.id == "c2"

    def test_created_entities_reach_app_store(self):
        created = {"decks": [deck_json("d-new", "Anatomy")], "collections": [], "cards": []}
        handler_response = exchange_json("c1", "make an anatomy deck", "Done", created=created)
        api = make_api(lambda r: httpx.Response(200, json=handler_response))
        events = EntityEvents()
        app_store = AppStore(api, events=events)
        app_store.set_state(decks=[Deck(id="d1", name="Old")])
        chat_store = ChatStore(api, events=events)
        chat_store.set_current_chat(open_chat("c1"))

        asyncio.run(chat_store.send_message("c1", "make an anatomy deck"))

        assert [d.id for d in app_store.state.decks] == ["d-new", "d1"]
