"""Pydantic record contracts shared by the API, the assistant and the client.

Records serialize with camelCase keys on the wire (``cardCount``,
``userMessage``) while Python code uses snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageRole = Literal["user", "assistant"]
ReviewResponse = Literal["again", "hard", "good", "easy"]

DEFAULT_CHAT_TITLE = "New Chat"
CHAT_TITLE_LENGTH = 50


def chat_title_from_message(content: str) -> str:
    """Title given to a default-titled chat after its first user message."""
    title = content[:CHAT_TITLE_LENGTH]
    if len(content) > CHAT_TITLE_LENGTH:
        title += "..."
    return title


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Dump to a JSON-compatible dict using wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Entities
# =============================================================================


class User(CamelModel):
    """Application user resolved from the identity provider."""

    id: str
    external_id: str
    email: str | None = None
    created_at: datetime | None = None


class Deck(CamelModel):
    """A named container of flashcards with its card count."""

    id: str
    name: str
    description: str | None = None
    card_count: int = 0
    created_at: datetime | None = None


class Card(CamelModel):
    """A single flashcard and its review schedule."""

    id: str
    deck_id: str
    front: str
    back: str
    created_at: datetime | None = None
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    due_at: datetime | None = None
    last_reviewed_at: datetime | None = None


class DeckWithCards(Deck):
    """Deck detail view including every card."""

    cards: list[Card] = Field(default_factory=list)


class Collection(CamelModel):
    """A named group of decks with its deck count."""

    id: str
    name: str
    description: str | None = None
    deck_count: int = 0
    created_at: datetime | None = None


class CollectionDetails(CamelModel):
    """Collection header shown on the collection detail view."""

    id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None


class CollectionWithDecks(Collection):
    """Collection detail view including its decks, newest link first."""

    decks: list[Deck] = Field(default_factory=list)


class Chat(CamelModel):
    """Chat summary used in list views."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class Message(CamelModel):
    """A persisted (or optimistic) chat message."""

    id: str
    chat_id: str
    role: MessageRole
    content: str
    created_at: datetime


class ChatWithMessages(Chat):
    """Chat with its full message history in display order."""

    messages: list[Message] = Field(default_factory=list)


class CreatedEntities(CamelModel):
    """Entities created by assistant tool calls during one chat turn."""

    decks: list[Deck] = Field(default_factory=list)
    collections: list[Collection] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.decks or self.collections or self.cards)


class SendMessageResponse(CamelModel):
    """Result of sending a chat message: the durable exchange."""

    user_message: Message
    assistant_message: Message
    created_entities: CreatedEntities = Field(default_factory=CreatedEntities)


# =============================================================================
# Inputs
# =============================================================================


class DeckInput(CamelModel):
    """Create/update payload for a deck."""

    name: str
    description: str | None = None


class CollectionInput(CamelModel):
    """Create/update payload for a collection."""

    name: str
    description: str | None = None


class CardInput(CamelModel):
    """Front/back text of a flashcard."""

    front: str = Field(description="The front text of the flashcard (question or prompt)")
    back: str = Field(description="The back text of the flashcard (answer)")


class CardImportRequest(CamelModel):
    cards: list[CardInput]


class DeckLinkRequest(CamelModel):
    deck_id: str


class BulkDeleteRequest(CamelModel):
    card_ids: list[str]


class BulkDeleteResult(CamelModel):
    deleted_count: int


class ReviewRequest(CamelModel):
    response: ReviewResponse


class ResetResult(CamelModel):
    success: bool = True
    reset_count: int


class ChatCreate(CamelModel):
    id: str | None = None
    title: str | None = None


class ChatTitleUpdate(CamelModel):
    title: str


class SendMessageInput(CamelModel):
    content: str
