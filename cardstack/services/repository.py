"""Ownership-checked data operations.

Every function here is one self-contained operation against the database,
taking the acting user's id explicitly. Reads and writes are always scoped
with ``user_id`` so that an id belonging to another user behaves exactly
like an id that does not exist. The functions flush but never commit;
callers own the transaction (see ``session_scope``).
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from cardstack.models.db_models import (
    CardRow,
    ChatRow,
    CollectionDeckRow,
    CollectionRow,
    DeckRow,
    MessageRow,
    UserRow,
    utcnow,
)
from cardstack.models.entities import (
    DEFAULT_CHAT_TITLE,
    Card,
    CardInput,
    Chat,
    ChatWithMessages,
    Collection,
    CollectionWithDecks,
    Deck,
    DeckWithCards,
    Message,
    User,
    chat_title_from_message,
)

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
REVIEW_QUALITY = {"again": 1, "hard": 3, "good": 4, "easy": 5}


# =============================================================================
# Exceptions
# =============================================================================


class RepositoryError(Exception):
    """Base exception for data operation errors."""

    pass


class EntityNotFoundError(RepositoryError):
    """Raised when an id does not resolve under the acting user."""

    entity = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(
            f"{self.entity} not found with ID: {entity_id}. "
            "It may not exist or may belong to another user."
        )


class DeckNotFoundError(EntityNotFoundError):
    entity = "Deck"


class CollectionNotFoundError(EntityNotFoundError):
    entity = "Collection"


class CardNotFoundError(EntityNotFoundError):
    entity = "Flashcard"


class ChatNotFoundError(EntityNotFoundError):
    entity = "Chat"


class InvalidInputError(RepositoryError, ValueError):
    """Raised when input is rejected before any row is touched."""

    pass


# =============================================================================
# Helpers
# =============================================================================


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _require_text(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise InvalidInputError(message)
    return value.strip()


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _to_deck(row: DeckRow, card_count: int) -> Deck:
    return Deck(
        id=row.id,
        name=row.name,
        description=row.description,
        card_count=card_count,
        created_at=_as_utc(row.created_at),
    )


def _to_collection(row: CollectionRow, deck_count: int) -> Collection:
    return Collection(
        id=row.id,
        name=row.name,
        description=row.description,
        deck_count=deck_count,
        created_at=_as_utc(row.created_at),
    )


def _to_card(row: CardRow) -> Card:
    return Card(
        id=row.id,
        deck_id=row.deck_id,
        front=row.front,
        back=row.back,
        created_at=_as_utc(row.created_at),
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        repetitions=row.repetitions,
        due_at=_as_utc(row.due_at),
        last_reviewed_at=_as_utc(row.last_reviewed_at),
    )


def _to_chat(row: ChatRow) -> Chat:
    return Chat(
        id=row.id,
        title=row.title,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _to_message(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        chat_id=row.chat_id,
        role=row.role,
        content=row.content,
        created_at=_as_utc(row.created_at),
    )


def _owned_deck(session: Session, deck_id: str, user_id: str) -> DeckRow:
    row = session.scalar(
        select(DeckRow).where(DeckRow.id == deck_id, DeckRow.user_id == user_id)
    )
    if row is None:
        raise DeckNotFoundError(deck_id)
    return row


def _owned_collection(session: Session, collection_id: str, user_id: str) -> CollectionRow:
    row = session.scalar(
        select(CollectionRow).where(
            CollectionRow.id == collection_id, CollectionRow.user_id == user_id
        )
    )
    if row is None:
        raise CollectionNotFoundError(collection_id)
    return row


def _owned_card(session: Session, card_id: str, user_id: str) -> CardRow:
    row = session.scalar(
        select(CardRow)
        .join(DeckRow, DeckRow.id == CardRow.deck_id)
        .where(CardRow.id == card_id, DeckRow.user_id == user_id)
    )
    if row is None:
        raise CardNotFoundError(card_id)
    return row


def _owned_chat(session: Session, chat_id: str, user_id: str) -> ChatRow:
    row = session.scalar(
        select(ChatRow).where(ChatRow.id == chat_id, ChatRow.user_id == user_id)
    )
    if row is None:
        raise ChatNotFoundError(chat_id)
    return row


def _card_count(session: Session, deck_id: str) -> int:
    return session.scalar(select(func.count(CardRow.id)).where(CardRow.deck_id == deck_id)) or 0


def _deck_count(session: Session, collection_id: str) -> int:
    return (
        session.scalar(
            select(func.count(CollectionDeckRow.deck_id)).where(
                CollectionDeckRow.collection_id == collection_id
            )
        )
        or 0
    )


# =============================================================================
# Users
# =============================================================================


def get_or_create_user(session: Session, external_id: str, email: str | None = None) -> User:
    """Resolve the identity provider's subject to an application user."""
    row = session.scalar(select(UserRow).where(UserRow.external_id == external_id))
    if row is None:
        row = UserRow(external_id=external_id, email=email)
        session.add(row)
        session.flush()
    elif email and row.email != email:
        row.email = email
    return User(
        id=row.id,
        external_id=row.external_id,
        email=row.email,
        created_at=_as_utc(row.created_at),
    )


# =============================================================================
# Decks
# =============================================================================


def list_decks(session: Session, user_id: str) -> list[Deck]:
    """List the user's decks with card counts, newest first."""
    card_count = func.count(CardRow.id)
    rows = session.execute(
        select(DeckRow, card_count)
        .outerjoin(CardRow, CardRow.deck_id == DeckRow.id)
        .where(DeckRow.user_id == user_id)
        .group_by(DeckRow.id)
        .order_by(DeckRow.created_at.desc())
    ).all()
    return [_to_deck(row, count) for row, count in rows]


def create_deck(
    session: Session, user_id: str, name: str, description: str | None = None
) -> Deck:
    row = DeckRow(
        user_id=user_id,
        name=_require_text(name, "Deck name is required and cannot be empty."),
        description=_optional_text(description),
    )
    session.add(row)
    session.flush()
    return _to_deck(row, 0)


def get_deck_with_cards(session: Session, deck_id: str, user_id: str) -> DeckWithCards:
    row = _owned_deck(session, deck_id, user_id)
    cards = [_to_card(card) for card in row.cards]
    return DeckWithCards(**_to_deck(row, len(cards)).model_dump(), cards=cards)


def update_deck_if_owned(
    session: Session,
    deck_id: str,
    user_id: str,
    name: str,
    description: str | None = None,
) -> Deck:
    """Replace a deck's name and description."""
    name = _require_text(name, "Deck name is required and cannot be empty.")
    row = _owned_deck(session, deck_id, user_id)
    row.name = name
    row.description = _optional_text(description)
    session.flush()
    return _to_deck(row, _card_count(session, deck_id))


def delete_deck_if_owned(session: Session, deck_id: str, user_id: str) -> None:
    row = _owned_deck(session, deck_id, user_id)
    session.execute(delete(CollectionDeckRow).where(CollectionDeckRow.deck_id == deck_id))
    session.delete(row)
    session.flush()


# =============================================================================
# Collections
# =============================================================================


def list_collections(session: Session, user_id: str) -> list[Collection]:
    """List the user's collections with deck counts, newest first."""
    deck_count = func.count(CollectionDeckRow.deck_id)
    rows = session.execute(
        select(CollectionRow, deck_count)
        .outerjoin(CollectionDeckRow, CollectionDeckRow.collection_id == CollectionRow.id)
        .where(CollectionRow.user_id == user_id)
        .group_by(CollectionRow.id)
        .order_by(CollectionRow.created_at.desc())
    ).all()
    return [_to_collection(row, count) for row, count in rows]


def create_collection(
    session: Session, user_id: str, name: str, description: str | None = None
) -> Collection:
    row = CollectionRow(
        user_id=user_id,
        name=_require_text(name, "Collection name is required and cannot be empty."),
        description=_optional_text(description),
    )
    session.add(row)
    session.flush()
    return _to_collection(row, 0)


def get_collection_with_decks(
    session: Session, collection_id: str, user_id: str
) -> CollectionWithDecks:
    """Fetch a collection and its decks, most recently linked first."""
    row = _owned_collection(session, collection_id, user_id)
    card_count = func.count(CardRow.id)
    deck_rows = session.execute(
        select(DeckRow, card_count)
        .join(CollectionDeckRow, CollectionDeckRow.deck_id == DeckRow.id)
        .outerjoin(CardRow, CardRow.deck_id == DeckRow.id)
        .where(CollectionDeckRow.collection_id == collection_id)
        .group_by(DeckRow.id, CollectionDeckRow.added_at)
        .order_by(CollectionDeckRow.added_at.desc())
    ).all()
    decks = [_to_deck(deck, count) for deck, count in deck_rows]
    return CollectionWithDecks(**_to_collection(row, len(decks)).model_dump(), decks=decks)


def update_collection_if_owned(
    session: Session,
    collection_id: str,
    user_id: str,
    name: str,
    description: str | None = None,
) -> Collection:
    name = _require_text(name, "Collection name is required and cannot be empty.")
    row = _owned_collection(session, collection_id, user_id)
    row.name = name
    row.description = _optional_text(description)
    session.flush()
    return _to_collection(row, _deck_count(session, collection_id))


def delete_collection_if_owned(session: Session, collection_id: str, user_id: str) -> None:
    """Delete a collection; its decks are unlinked, not deleted."""
    row = _owned_collection(session, collection_id, user_id)
    session.execute(
        delete(CollectionDeckRow).where(CollectionDeckRow.collection_id == collection_id)
    )
    session.delete(row)
    session.flush()


def add_deck_to_collection_if_owned(
    session: Session, collection_id: str, deck_id: str, user_id: str
) -> bool:
    """Link a deck into a collection.

    Returns:
        True if a new link was created, False if it already existed.
    """
    _owned_collection(session, collection_id, user_id)
    _owned_deck(session, deck_id, user_id)
    if session.get(CollectionDeckRow, (collection_id, deck_id)) is not None:
        return False
    session.add(CollectionDeckRow(collection_id=collection_id, deck_id=deck_id))
    session.flush()
    return True


def remove_deck_from_collection_if_owned(
    session: Session, collection_id: str, deck_id: str, user_id: str
) -> bool:
    """Unlink a deck from a collection.

    Returns:
        True if a link was removed.
    """
    _owned_collection(session, collection_id, user_id)
    result = session.execute(
        delete(CollectionDeckRow).where(
            CollectionDeckRow.collection_id == collection_id,
            CollectionDeckRow.deck_id == deck_id,
        )
    )
    return result.rowcount > 0


def create_deck_in_collection_if_owned(
    session: Session,
    collection_id: str,
    user_id: str,
    name: str,
    description: str | None = None,
) -> Deck:
    """Create a deck and link it into an owned collection in one operation."""
    _owned_collection(session, collection_id, user_id)
    deck = create_deck(session, user_id, name, description)
    session.add(CollectionDeckRow(collection_id=collection_id, deck_id=deck.id))
    session.flush()
    return deck


# =============================================================================
# Cards
# =============================================================================


def create_card_if_owned(
    session: Session, deck_id: str, user_id: str, front: str, back: str
) -> Card:
    front = _require_text(front, "Flashcard front text is required and cannot be empty.")
    back = _require_text(back, "Flashcard back text is required and cannot be empty.")
    _owned_deck(session, deck_id, user_id)
    row = CardRow(deck_id=deck_id, front=front, back=back)
    session.add(row)
    session.flush()
    return _to_card(row)


def update_card_if_owned(
    session: Session, card_id: str, user_id: str, front: str, back: str
) -> Card:
    front = _require_text(front, "Flashcard front text is required and cannot be empty.")
    back = _require_text(back, "Flashcard back text is required and cannot be empty.")
    row = _owned_card(session, card_id, user_id)
    row.front = front
    row.back = back
    session.flush()
    return _to_card(row)


def delete_card_if_owned(session: Session, card_id: str, user_id: str) -> None:
    row = _owned_card(session, card_id, user_id)
    session.delete(row)
    session.flush()


def bulk_create_cards(
    session: Session, deck_id: str, user_id: str, cards: Sequence[CardInput]
) -> list[Card]:
    """Insert several cards into one deck, all or nothing.

    Every card is validated before the first row is added.
    """
    if not cards:
        raise InvalidInputError("No cards provided.")
    for card in cards:
        if not (card.front and card.front.strip() and card.back and card.back.strip()):
            raise InvalidInputError("Each flashcard must have non-empty front and back text.")

    _owned_deck(session, deck_id, user_id)
    rows = [
        CardRow(deck_id=deck_id, front=card.front.strip(), back=card.back.strip())
        for card in cards
    ]
    session.add_all(rows)
    session.flush()
    return [_to_card(row) for row in rows]


def bulk_delete_cards_if_owned(session: Session, card_ids: Sequence[str], user_id: str) -> int:
    """Delete the subset of ``card_ids`` owned by the user.

    Returns:
        Number of cards deleted.
    """
    if not card_ids:
        raise InvalidInputError("Card IDs array is required.")
    owned_ids = list(
        session.scalars(
            select(CardRow.id)
            .join(DeckRow, DeckRow.id == CardRow.deck_id)
            .where(CardRow.id.in_(card_ids), DeckRow.user_id == user_id)
        )
    )
    if owned_ids:
        session.execute(delete(CardRow).where(CardRow.id.in_(owned_ids)))
    return len(owned_ids)


def get_all_user_cards(session: Session, user_id: str) -> list[Card]:
    rows = session.scalars(
        select(CardRow)
        .join(DeckRow, DeckRow.id == CardRow.deck_id)
        .where(DeckRow.user_id == user_id)
        .order_by(CardRow.created_at.desc())
    )
    return [_to_card(row) for row in rows]


# =============================================================================
# Review scheduling
# =============================================================================


def schedule_sm2(
    ease_factor: float, interval_days: int, repetitions: int, quality: int
) -> tuple[float, int, int]:
    """Compute the next SM-2 state for a review of the given quality (0-5).

    A failed recall (quality below 3) restarts the repetition count and makes
    the card due again the same day.

    Returns:
        Tuple of (ease_factor, interval_days, repetitions).
    """
    if quality < 3:
        repetitions = 0
        interval_days = 0
    else:
        if repetitions == 0:
            interval_days = 1
        elif repetitions == 1:
            interval_days = 6
        else:
            interval_days = round(interval_days * ease_factor)
        repetitions += 1

    ease_factor += 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
    return max(MIN_EASE_FACTOR, ease_factor), interval_days, repetitions


def record_card_review_sm2(
    session: Session,
    card_id: str,
    user_id: str,
    response: str,
    now: datetime | None = None,
) -> Card:
    """Apply a study response to a card's schedule."""
    if response not in REVIEW_QUALITY:
        raise InvalidInputError("Invalid response. Must be one of: again, hard, good, easy")
    row = _owned_card(session, card_id, user_id)
    now = now or utcnow()

    ease_factor, interval_days, repetitions = schedule_sm2(
        row.ease_factor, row.interval_days, row.repetitions, REVIEW_QUALITY[response]
    )
    row.ease_factor = ease_factor
    row.interval_days = interval_days
    row.repetitions = repetitions
    row.due_at = now + timedelta(days=interval_days)
    row.last_reviewed_at = now
    session.flush()
    return _to_card(row)


def reset_deck_cards(session: Session, deck_id: str, user_id: str) -> int:
    """Return every card in a deck to its never-reviewed state."""
    row = _owned_deck(session, deck_id, user_id)
    for card in row.cards:
        card.ease_factor = DEFAULT_EASE_FACTOR
        card.interval_days = 0
        card.repetitions = 0
        card.due_at = None
        card.last_reviewed_at = None
    session.flush()
    return len(row.cards)


def get_study_queue(
    session: Session,
    deck_id: str,
    user_id: str,
    include_all: bool = False,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[Card]:
    """Build the review queue for a deck.

    Cards that are due (or never reviewed) are shuffled and then ordered by
    due date, most overdue first; never-reviewed cards count as due now, so
    they stay in shuffled order among themselves.
    """
    row = _owned_deck(session, deck_id, user_id)
    now = now or utcnow()
    cards = [
        card
        for card in row.cards
        if include_all or card.due_at is None or _as_utc(card.due_at) <= now
    ]
    (rng or random).shuffle(cards)
    cards.sort(key=lambda card: _as_utc(card.due_at) or now)
    return [_to_card(card) for card in cards]


# =============================================================================
# Chats
# =============================================================================


def list_chats(session: Session, user_id: str) -> list[Chat]:
    """List the user's chats, most recently updated first."""
    rows = session.scalars(
        select(ChatRow).where(ChatRow.user_id == user_id).order_by(ChatRow.updated_at.desc())
    )
    return [_to_chat(row) for row in rows]


def create_chat(
    session: Session, user_id: str, title: str | None = None, chat_id: str | None = None
) -> Chat:
    """Create an empty chat, optionally with a client-chosen id."""
    if chat_id is not None and session.get(ChatRow, chat_id) is not None:
        raise InvalidInputError(f"Chat already exists with ID: {chat_id}")
    now = utcnow()
    row = ChatRow(
        user_id=user_id,
        title=_optional_text(title) or DEFAULT_CHAT_TITLE,
        created_at=now,
        updated_at=now,
    )
    if chat_id is not None:
        row.id = chat_id
    session.add(row)
    session.flush()
    return _to_chat(row)


def get_chat_with_messages(session: Session, chat_id: str, user_id: str) -> ChatWithMessages:
    row = _owned_chat(session, chat_id, user_id)
    return ChatWithMessages(
        **_to_chat(row).model_dump(),
        messages=[_to_message(message) for message in row.messages],
    )


def update_chat_title_if_owned(
    session: Session, chat_id: str, user_id: str, title: str
) -> Chat:
    title = _require_text(title, "Title is required.")
    row = _owned_chat(session, chat_id, user_id)
    row.title = title
    row.updated_at = utcnow()
    session.flush()
    return _to_chat(row)


def delete_chat_if_owned(session: Session, chat_id: str, user_id: str) -> None:
    row = _owned_chat(session, chat_id, user_id)
    session.delete(row)
    session.flush()


def save_chat_exchange(
    session: Session,
    chat_id: str,
    user_id: str,
    user_content: str,
    assistant_content: str,
    user_created_at: datetime | None = None,
) -> tuple[Message, Message]:
    """Persist one user/assistant message pair.

    A chat still carrying the default title is renamed after its first
    user message.

    Returns:
        Tuple of (user_message, assistant_message).
    """
    chat = _owned_chat(session, chat_id, user_id)
    last_sequence = session.scalar(
        select(func.max(MessageRow.sequence)).where(MessageRow.chat_id == chat_id)
    )
    next_sequence = (last_sequence or 0) + 1
    now = utcnow()

    user_row = MessageRow(
        chat_id=chat_id,
        sequence=next_sequence,
        role="user",
        content=user_content,
        created_at=user_created_at or now,
    )
    assistant_row = MessageRow(
        chat_id=chat_id,
        sequence=next_sequence + 1,
        role="assistant",
        content=assistant_content,
        created_at=now,
    )
    session.add_all([user_row, assistant_row])

    if chat.title == DEFAULT_CHAT_TITLE and last_sequence is None:
        chat.title = chat_title_from_message(user_content)
    chat.updated_at = now
    session.flush()
    return _to_message(user_row), _to_message(assistant_row)
