"""Client store for decks and collections with optimistic updates.

Every mutation follows the same pattern: capture a pre-image, apply the
change locally so subscribers see it immediately, issue exactly one request,
then either confirm (swap placeholder ids for server ids) or restore the
pre-image. Placeholder ids never reach the server.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from cardstack.client.api_client import ApiError, CardStackClient
from cardstack.client.events import EntityEvents, EntityKind
from cardstack.client.state import Notifier, StateContainer, is_placeholder_id, temp_id
from cardstack.core.logging_config import get_logger
from cardstack.models.entities import (
    Card,
    Collection,
    CollectionDetails,
    CollectionInput,
    Deck,
    DeckInput,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppState:
    """Snapshot of the entity store."""

    decks: list[Deck] = field(default_factory=list)
    decks_loaded: bool = False
    decks_loading: bool = False

    collections: list[Collection] = field(default_factory=list)
    collections_loaded: bool = False
    collections_loading: bool = False

    # Keyed by collection id
    collection_decks: dict[str, list[Deck]] = field(default_factory=dict)
    collection_decks_loading: dict[str, bool] = field(default_factory=dict)
    collection_details: dict[str, CollectionDetails] = field(default_factory=dict)


def _find(items: list[Any], item_id: str) -> Any | None:
    return next((item for item in items if item.id == item_id), None)


def _without(items: list[Any], item_id: str) -> list[Any]:
    return [item for item in items if item.id != item_id]


def _with_replaced(items: list[Any], item_id: str, replacement: Any) -> list[Any]:
    return [replacement if item.id == item_id else item for item in items]


class AppStore(StateContainer[AppState]):
    """Decks, collections and collection membership for one application.

    Args:
        api: Client used for every request.
        events: Optional channel; the store inserts entities announced on it.
        notifier: Optional callback for transient failure notices.
    """

    def __init__(
        self,
        api: CardStackClient,
        events: EntityEvents | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        super().__init__(AppState, notifier)
        self._api = api
        if events is not None:
            events.subscribe(self.on_entity_created)

    # =========================================================================
    # Shared optimistic transitions
    # =========================================================================

    async def _fetch_list(
        self,
        items_field: str,
        request: Callable[[], Awaitable[list[Any]]],
        action: str,
    ) -> None:
        loading_field = f"{items_field}_loading"
        if getattr(self.state, loading_field):
            return

        self.set_state(**{loading_field: True})
        try:
            items = await request()
        except ApiError as e:
            self.set_state(**{loading_field: False})
            self._report_failure(f"Failed to {action}", e)
            return

        self.set_state(**{items_field: items, f"{items_field}_loaded": True, loading_field: False})

    async def _add(
        self,
        items_field: str,
        placeholder: Any,
        request: Callable[[], Awaitable[Any]],
        action: str,
        zero_counts: dict[str, int],
    ) -> Any | None:
        self.set_state(**{items_field: [placeholder, *getattr(self.state, items_field)]})

        try:
            created = await request()
        except ApiError as e:
            self.set_state(**{items_field: _without(getattr(self.state, items_field), placeholder.id)})
            self._report_failure(f"Failed to {action}", e)
            return None

        # Newly created entities have no children yet
        confirmed = created.model_copy(update=zero_counts)
        self.set_state(
            **{
                items_field: _with_replaced(
                    getattr(self.state, items_field), placeholder.id, confirmed
                )
            }
        )
        return confirmed

    async def _update(
        self,
        items_field: str,
        item_id: str,
        patch: dict[str, Any],
        request: Callable[[], Awaitable[Any]],
        action: str,
    ) -> bool:
        original = _find(getattr(self.state, items_field), item_id)
        if original is None or is_placeholder_id(item_id):
            return False

        patched = original.model_copy(update=patch)
        self.set_state(**{items_field: _with_replaced(getattr(self.state, items_field), item_id, patched)})

        try:
            await request()
        except ApiError as e:
            # Full record replacement, not a merge
            self.set_state(
                **{items_field: _with_replaced(getattr(self.state, items_field), item_id, original)}
            )
            self._report_failure(f"Failed to {action}", e)
            return False
        return True

    async def _delete(
        self,
        items_field: str,
        item_id: str,
        request: Callable[[], Awaitable[Any]],
        action: str,
    ) -> bool:
        # Not yet confirmed by the server, so there is nothing to delete there
        if is_placeholder_id(item_id):
            return False

        original_items = getattr(self.state, items_field)
        self.set_state(**{items_field: _without(original_items, item_id)})

        try:
            await request()
        except ApiError as e:
            self.set_state(**{items_field: original_items})
            self._report_failure(f"Failed to {action}", e)
            return False
        return True

    def _set_collection_deck_list(self, collection_id: str, decks: list[Deck]) -> None:
        self.set_state(collection_decks={**self.state.collection_decks, collection_id: decks})

    # =========================================================================
    # Decks
    # =========================================================================

    async def fetch_decks(self) -> None:
        await self._fetch_list("decks", self._api.list_decks, "fetch decks")

    async def ensure_decks_loaded(self) -> None:
        if not self.state.decks_loaded and not self.state.decks_loading:
            await self.fetch_decks()

    async def add_deck(self, deck: DeckInput) -> Deck | None:
        placeholder = Deck(id=temp_id(), name=deck.name, description=deck.description or None)
        return await self._add(
            "decks",
            placeholder,
            lambda: self._api.create_deck(deck),
            "create deck",
            {"card_count": 0},
        )

    async def update_deck(self, deck_id: str, deck: DeckInput) -> bool:
        return await self._update(
            "decks",
            deck_id,
            {"name": deck.name, "description": deck.description},
            lambda: self._api.update_deck(deck_id, deck),
            "update deck",
        )

    async def delete_deck(self, deck_id: str) -> bool:
        return await self._delete(
            "decks", deck_id, lambda: self._api.delete_deck(deck_id), "delete deck"
        )

    def increment_deck_card_count(self, deck_id: str, amount: int = 1) -> None:
        self.set_state(
            decks=[
                d.model_copy(update={"card_count": d.card_count + amount}) if d.id == deck_id else d
                for d in self.state.decks
            ]
        )

    def decrement_deck_card_count(self, deck_id: str, amount: int = 1) -> None:
        self.set_state(
            decks=[
                d.model_copy(update={"card_count": max(0, d.card_count - amount)})
                if d.id == deck_id
                else d
                for d in self.state.decks
            ]
        )

    # =========================================================================
    # Collections
    # =========================================================================

    async def fetch_collections(self) -> None:
        await self._fetch_list("collections", self._api.list_collections, "fetch collections")

    async def ensure_collections_loaded(self) -> None:
        if not self.state.collections_loaded and not self.state.collections_loading:
            await self.fetch_collections()

    async def add_collection(self, collection: CollectionInput) -> Collection | None:
        placeholder = Collection(
            id=temp_id(), name=collection.name, description=collection.description or None
        )
        return await self._add(
            "collections",
            placeholder,
            lambda: self._api.create_collection(collection),
            "create collection",
            {"deck_count": 0},
        )

    async def update_collection(self, collection_id: str, collection: CollectionInput) -> bool:
        return await self._update(
            "collections",
            collection_id,
            {"name": collection.name, "description": collection.description},
            lambda: self._api.update_collection(collection_id, collection),
            "update collection",
        )

    async def delete_collection(self, collection_id: str) -> bool:
        return await self._delete(
            "collections",
            collection_id,
            lambda: self._api.delete_collection(collection_id),
            "delete collection",
        )

    def increment_collection_deck_count(self, collection_id: str) -> None:
        self.set_state(
            collections=[
                c.model_copy(update={"deck_count": c.deck_count + 1})
                if c.id == collection_id
                else c
                for c in self.state.collections
            ]
        )

    def decrement_collection_deck_count(self, collection_id: str) -> None:
        self.set_state(
            collections=[
                c.model_copy(update={"deck_count": max(0, c.deck_count - 1)})
                if c.id == collection_id
                else c
                for c in self.state.collections
            ]
        )

    # =========================================================================
    # Collection membership
    # =========================================================================

    def set_collection_decks(self, collection_id: str, decks: list[Deck]) -> None:
        self._set_collection_deck_list(collection_id, list(decks))

    def set_collection_details(self, collection_id: str, details: CollectionDetails) -> None:
        self.set_state(
            collection_details={**self.state.collection_details, collection_id: details}
        )

    async def fetch_collection_decks(self, collection_id: str) -> None:
        """Load a collection's decks and header into the per-collection maps."""
        if self.state.collection_decks_loading.get(collection_id):
            return

        self.set_state(
            collection_decks_loading={**self.state.collection_decks_loading, collection_id: True}
        )
        try:
            collection = await self._api.get_collection(collection_id)
        except ApiError as e:
            self.set_state(
                collection_decks_loading={
                    **self.state.collection_decks_loading,
                    collection_id: False,
                }
            )
            self._report_failure("Failed to fetch collection", e)
            return

        details = CollectionDetails(
            id=collection.id,
            name=collection.name,
            description=collection.description,
            created_at=collection.created_at,
        )
        self.set_state(
            collection_decks={**self.state.collection_decks, collection_id: collection.decks},
            collection_decks_loading={**self.state.collection_decks_loading, collection_id: False},
            collection_details={**self.state.collection_details, collection_id: details},
        )

    async def add_deck_to_collection(self, collection_id: str, deck_id: str) -> bool:
        """Link a known deck into a collection.

        Returns:
            False without a request when the deck is not in the store.
        """
        deck = _find(self.state.decks, deck_id)
        if deck is None:
            return False

        current = self.state.collection_decks.get(collection_id, [])
        self._set_collection_deck_list(collection_id, [*current, deck])
        self.increment_collection_deck_count(collection_id)

        try:
            await self._api.add_deck_to_collection(collection_id, deck_id)
        except ApiError as e:
            self._set_collection_deck_list(collection_id, current)
            self.decrement_collection_deck_count(collection_id)
            self._report_failure("Failed to add deck to collection", e)
            return False
        return True

    async def remove_deck_from_collection(self, collection_id: str, deck_id: str) -> bool:
        current = self.state.collection_decks.get(collection_id, [])
        self._set_collection_deck_list(collection_id, _without(current, deck_id))
        self.decrement_collection_deck_count(collection_id)

        try:
            await self._api.remove_deck_from_collection(collection_id, deck_id)
        except ApiError as e:
            self._set_collection_deck_list(collection_id, current)
            self.increment_collection_deck_count(collection_id)
            self._report_failure("Failed to remove deck from collection", e)
            return False
        return True

    async def create_deck_in_collection(
        self, collection_id: str, deck: DeckInput
    ) -> Deck | None:
        """Create a deck that appears in both the deck list and the collection."""
        placeholder = Deck(id=temp_id(), name=deck.name, description=deck.description or None)
        current = self.state.collection_decks.get(collection_id, [])

        self.set_state(
            decks=[placeholder, *self.state.decks],
            collection_decks={**self.state.collection_decks, collection_id: [*current, placeholder]},
        )
        self.increment_collection_deck_count(collection_id)

        try:
            created = await self._api.create_deck_in_collection(collection_id, deck)
        except ApiError as e:
            self.set_state(
                decks=_without(self.state.decks, placeholder.id),
                collection_decks={**self.state.collection_decks, collection_id: current},
            )
            self.decrement_collection_deck_count(collection_id)
            self._report_failure("Failed to create deck in collection", e)
            return None

        confirmed = created.model_copy(update={"card_count": 0})
        self.set_state(
            decks=_with_replaced(self.state.decks, placeholder.id, confirmed),
            collection_decks={
                **self.state.collection_decks,
                collection_id: _with_replaced(
                    self.state.collection_decks.get(collection_id, []), placeholder.id, confirmed
                ),
            },
        )
        return confirmed

    # =========================================================================
    # Cross-store events
    # =========================================================================

    def on_entity_created(self, kind: EntityKind, entity: Deck | Collection | Card) -> None:
        """Reflect an entity created elsewhere (the assistant) without a refetch."""
        if kind == "deck":
            if _find(self.state.decks, entity.id) is None:
                self.set_state(decks=[entity, *self.state.decks])
        elif kind == "collection":
            if _find(self.state.collections, entity.id) is None:
                self.set_state(collections=[entity, *self.state.collections])
        elif kind == "card":
            self.increment_deck_card_count(entity.deck_id)
        else:
            logger.warning("Ignoring unknown entity kind", extra={"extra_data": {"kind": kind}})
