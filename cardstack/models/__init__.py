"""Record contracts and table definitions for CardStack."""

from cardstack.models.entities import (
    Card,
    CardInput,
    Chat,
    ChatWithMessages,
    Collection,
    CollectionDetails,
    CollectionInput,
    CollectionWithDecks,
    CreatedEntities,
    Deck,
    DeckInput,
    DeckWithCards,
    Message,
    SendMessageResponse,
    User,
)

__all__ = [
    # Entities
    "Card",
    "Chat",
    "ChatWithMessages",
    "Collection",
    "CollectionDetails",
    "CollectionWithDecks",
    "Deck",
    "DeckWithCards",
    "Message",
    "User",
    # Inputs and results
    "CardInput",
    "CollectionInput",
    "CreatedEntities",
    "DeckInput",
    "SendMessageResponse",
]
