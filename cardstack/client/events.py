"""Entity notifications between client stores.

The chat store announces entities the assistant created; the entity store
listens and inserts them. Neither store imports the other.
"""

from collections.abc import Callable
from typing import Literal

from cardstack.core.logging_config import get_logger
from cardstack.models.entities import Card, Collection, CreatedEntities, Deck

logger = get_logger(__name__)

EntityKind = Literal["deck", "collection", "card"]
EntityListener = Callable[[EntityKind, Deck | Collection | Card], None]


class EntityEvents:
    """Synchronous publish/subscribe channel for entity-created events."""

    def __init__(self) -> None:
        self._listeners: list[EntityListener] = []

    def subscribe(self, listener: EntityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, kind: EntityKind, entity: Deck | Collection | Card) -> None:
        for listener in list(self._listeners):
            listener(kind, entity)

    def emit_created(self, created: CreatedEntities) -> None:
        """Announce everything the assistant created during one chat turn."""
        if created.is_empty():
            return
        logger.debug(
            "Announcing created entities",
            extra={
                "extra_data": {
                    "decks": len(created.decks),
                    "collections": len(created.collections),
                    "cards": len(created.cards),
                }
            },
        )
        # Decks before cards so card counts land on a deck that exists
        for deck in created.decks:
            self.emit("deck", deck)
        for collection in created.collections:
            self.emit("collection", collection)
        for card in created.cards:
            self.emit("card", card)
