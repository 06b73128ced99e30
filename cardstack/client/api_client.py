"""Async HTTP client for the CardStack API."""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from cardstack.models.entities import (
    Chat,
    ChatWithMessages,
    Collection,
    CollectionInput,
    CollectionWithDecks,
    Deck,
    DeckInput,
    SendMessageResponse,
)

DEFAULT_BASE_URL = "http://localhost:8000"

M = TypeVar("M", bound=BaseModel)


class ApiError(Exception):
    """A request to the API failed.

    Attributes:
        status_code: HTTP status of the response, or None for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


class CardStackClient:
    """Thin typed wrapper around the REST endpoints the client stores use.

    Args:
        base_url: API origin, used only when no ``http_client`` is given.
        headers: Extra headers sent with every request (identity headers).
        http_client: Preconfigured ``httpx.AsyncClient`` to use instead.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url)
        self._headers = dict(headers or {})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CardStackClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(
                method, path, json=json, headers=self._headers
            )
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise ApiError(_error_detail(response), status_code=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {path} returned a non-JSON body", status_code=response.status_code
            ) from e

    def _parse(self, model: type[M], data: Any) -> M:
        """Validate one response record, reporting a malformed body as ApiError."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Unexpected {model.__name__} response: {e}") from e

    def _parse_list(self, model: type[M], data: Any) -> list[M]:
        if not isinstance(data, list):
            raise ApiError(f"Expected a list of {model.__name__}, got {type(data).__name__}")
        return [self._parse(model, item) for item in data]

    # Decks

    async def list_decks(self) -> list[Deck]:
        data = await self._request("GET", "/api/decks")
        return self._parse_list(Deck, data)

    async def create_deck(self, deck: DeckInput) -> Deck:
        data = await self._request("POST", "/api/decks", json=deck.to_json_dict())
        return self._parse(Deck, data)

    async def update_deck(self, deck_id: str, deck: DeckInput) -> Deck:
        data = await self._request("PUT", f"/api/decks/{deck_id}", json=deck.to_json_dict())
        return self._parse(Deck, data)

    async def delete_deck(self, deck_id: str) -> None:
        await self._request("DELETE", f"/api/decks/{deck_id}")

    # Collections

    async def list_collections(self) -> list[Collection]:
        data = await self._request("GET", "/api/collections")
        return self._parse_list(Collection, data)

    async def create_collection(self, collection: CollectionInput) -> Collection:
        data = await self._request("POST", "/api/collections", json=collection.to_json_dict())
        return self._parse(Collection, data)

    async def get_collection(self, collection_id: str) -> CollectionWithDecks:
        data = await self._request("GET", f"/api/collections/{collection_id}")
        return self._parse(CollectionWithDecks, data)

    async def update_collection(
        self, collection_id: str, collection: CollectionInput
    ) -> Collection:
        data = await self._request(
            "PUT", f"/api/collections/{collection_id}", json=collection.to_json_dict()
        )
        return self._parse(Collection, data)

    async def delete_collection(self, collection_id: str) -> None:
        await self._request("DELETE", f"/api/collections/{collection_id}")

    async def add_deck_to_collection(self, collection_id: str, deck_id: str) -> None:
        await self._request(
            "POST", f"/api/collections/{collection_id}/decks", json={"deckId": deck_id}
        )

    async def remove_deck_from_collection(self, collection_id: str, deck_id: str) -> None:
        await self._request(
            "DELETE", f"/api/collections/{collection_id}/decks", json={"deckId": deck_id}
        )

    async def create_deck_in_collection(self, collection_id: str, deck: DeckInput) -> Deck:
        data = await self._request(
            "POST", f"/api/collections/{collection_id}/create-deck", json=deck.to_json_dict()
        )
        return self._parse(Deck, data)

    # Chats

    async def list_chats(self) -> list[Chat]:
        data = await self._request("GET", "/api/chat")
        return self._parse_list(Chat, data)

    async def create_chat(self, chat_id: str | None = None, title: str | None = None) -> Chat:
        payload = {key: value for key, value in (("id", chat_id), ("title", title)) if value}
        data = await self._request("POST", "/api/chat", json=payload)
        return self._parse(Chat, data)

    async def get_chat(self, chat_id: str) -> ChatWithMessages:
        data = await self._request("GET", f"/api/chat/{chat_id}")
        return self._parse(ChatWithMessages, data)

    async def update_chat_title(self, chat_id: str, title: str) -> Chat:
        data = await self._request("PUT", f"/api/chat/{chat_id}", json={"title": title})
        return self._parse(Chat, data)

    async def delete_chat(self, chat_id: str) -> None:
        await self._request("DELETE", f"/api/chat/{chat_id}")

    async def send_message(self, chat_id: str, content: str) -> SendMessageResponse:
        data = await self._request(
            "POST", f"/api/chat/{chat_id}/messages", json={"content": content}
        )
        return self._parse(SendMessageResponse, data)
