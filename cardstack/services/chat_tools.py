"""Database-backed tools exposed to the chat assistant.

Tools are built per request by ``create_tools_for_user``: every tool is bound
to the authenticated user's id, so nothing the model puts in its arguments
can reach another user's data. Each tool opens its own short transaction and
always returns a string. Failures (unknown ids, bad input, constraint
violations) come back as descriptive error text for the model to read.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cardstack.core.logging_config import get_logger
from cardstack.models.entities import CardInput, CreatedEntities
from cardstack.services import repository
from cardstack.services.database import SessionFactory, session_scope
from cardstack.services.repository import EntityNotFoundError, InvalidInputError

logger = get_logger(__name__)

MIN_BULK_CARDS = 2


# =============================================================================
# Tool input schemas
# =============================================================================


class NoInput(BaseModel):
    """Tools that take no arguments."""


class CollectionIdInput(BaseModel):
    collection_id: str = Field(description="The UUID of the collection to view")


class DeckIdInput(BaseModel):
    deck_id: str = Field(description="The UUID of the deck to view")


class CreateCollectionInput(BaseModel):
    name: str = Field(description="The name for the new collection (required)")
    description: str | None = Field(
        default=None, description="An optional description for the collection"
    )


class CreateDeckInput(BaseModel):
    name: str = Field(description="The name for the new deck (required)")
    description: str | None = Field(
        default=None, description="An optional description for the deck"
    )


class UpdateCollectionInput(BaseModel):
    collection_id: str = Field(description="The UUID of the collection to update")
    name: str = Field(description="The new name for the collection (required)")
    description: str | None = Field(
        default=None,
        description="The new description for the collection (optional, empty string clears it)",
    )


class UpdateDeckInput(BaseModel):
    deck_id: str = Field(description="The UUID of the deck to update")
    name: str = Field(description="The new name for the deck (required)")
    description: str | None = Field(
        default=None,
        description="The new description for the deck (optional, empty string clears it)",
    )


class DeckCollectionLinkInput(BaseModel):
    collection_id: str = Field(description="The UUID of the collection")
    deck_id: str = Field(description="The UUID of the deck")


class CreateFlashcardInput(BaseModel):
    deck_id: str = Field(description="The UUID of the deck to add the flashcard to")
    front: str = Field(description="The front text of the flashcard (question or prompt)")
    back: str = Field(description="The back text of the flashcard (answer)")


class UpdateFlashcardInput(BaseModel):
    card_id: str = Field(description="The UUID of the flashcard to update")
    front: str = Field(description="The new front text of the flashcard (question or prompt)")
    back: str = Field(description="The new back text of the flashcard (answer)")


class BulkCreateFlashcardsInput(BaseModel):
    deck_id: str = Field(description="The UUID of the deck to add the flashcards to")
    cards: list[CardInput] = Field(description="Flashcards to create (minimum 2)")


# =============================================================================
# Tool implementations
# =============================================================================


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


class _UserTools:
    """Tool bodies bound to one user id and one session factory."""

    def __init__(
        self,
        user_id: str,
        session_factory: SessionFactory,
        created: CreatedEntities | None = None,
    ) -> None:
        self.user_id = user_id
        self.session_factory = session_factory
        self.created = created

    def _run(
        self,
        action: str,
        operation: Callable[[Session, CreatedEntities], str],
    ) -> str:
        """Run one operation in its own transaction and render errors as text.

        Entities the operation reports as created are recorded only after
        the transaction commits.
        """
        pending = CreatedEntities()
        try:
            with session_scope(self.session_factory) as session:
                result = operation(session, pending)
        except EntityNotFoundError as e:
            return str(e)
        except InvalidInputError as e:
            return f"Error: {e}"
        except SQLAlchemyError as e:
            logger.warning(
                f"Tool database error while {action}",
                extra={"extra_data": {"user_id": self.user_id, "error": str(e)}},
            )
            return f"Error {action}: {e}"

        if self.created is not None:
            self.created.decks.extend(pending.decks)
            self.created.collections.extend(pending.collections)
            self.created.cards.extend(pending.cards)
        return result

    # -- Collections ---------------------------------------------------------

    def list_collections(self) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            collections = repository.list_collections(session, self.user_id)
            if not collections:
                return "No collections found. The user has not created any collections yet."
            return _dump([c.to_json_dict() for c in collections])

        return self._run("listing collections", operation)

    def view_collection(self, collection_id: str) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            collection = repository.get_collection_with_decks(
                session, collection_id, self.user_id
            )
            return _dump(collection.to_json_dict())

        return self._run("viewing collection", operation)

    def create_collection(self, name: str, description: str | None = None) -> str:
        def operation(session: Session, pending: CreatedEntities) -> str:
            collection = repository.create_collection(session, self.user_id, name, description)
            pending.collections.append(collection)
            return _dump(
                {
                    "success": True,
                    "message": f'Collection "{collection.name}" created successfully.',
                    "collection": collection.to_json_dict(),
                }
            )

        return self._run("creating collection", operation)

    def update_collection(
        self, collection_id: str, name: str, description: str | None = None
    ) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            collection = repository.update_collection_if_owned(
                session, collection_id, self.user_id, name, description
            )
            return _dump(
                {
                    "success": True,
                    "message": "Collection updated successfully.",
                    "collection": collection.to_json_dict(),
                }
            )

        return self._run("updating collection", operation)

    # -- Decks ---------------------------------------------------------------

    def list_decks(self) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            decks = repository.list_decks(session, self.user_id)
            if not decks:
                return "No decks found. The user has not created any decks yet."
            return _dump([d.to_json_dict() for d in decks])

        return self._run("listing decks", operation)

    def view_deck(self, deck_id: str) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            deck = repository.get_deck_with_cards(session, deck_id, self.user_id)
            return _dump(deck.to_json_dict())

        return self._run("viewing deck", operation)

    def create_deck(self, name: str, description: str | None = None) -> str:
        def operation(session: Session, pending: CreatedEntities) -> str:
            deck = repository.create_deck(session, self.user_id, name, description)
            pending.decks.append(deck)
            return _dump(
                {
                    "success": True,
                    "message": f'Deck "{deck.name}" created successfully.',
                    "deck": deck.to_json_dict(),
                }
            )

        return self._run("creating deck", operation)

    def update_deck(self, deck_id: str, name: str, description: str | None = None) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            deck = repository.update_deck_if_owned(
                session, deck_id, self.user_id, name, description
            )
            return _dump(
                {
                    "success": True,
                    "message": "Deck updated successfully.",
                    "deck": deck.to_json_dict(),
                }
            )

        return self._run("updating deck", operation)

    # -- Organization --------------------------------------------------------

    def add_deck_to_collection(self, collection_id: str, deck_id: str) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            repository.add_deck_to_collection_if_owned(
                session, collection_id, deck_id, self.user_id
            )
            return _dump({"success": True, "message": "Deck successfully added to collection."})

        return self._run("adding deck to collection", operation)

    def remove_deck_from_collection(self, collection_id: str, deck_id: str) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            repository.remove_deck_from_collection_if_owned(
                session, collection_id, deck_id, self.user_id
            )
            return _dump(
                {"success": True, "message": "Deck successfully removed from collection."}
            )

        return self._run("removing deck from collection", operation)

    # -- Flashcards ----------------------------------------------------------

    def create_flashcard(self, deck_id: str, front: str, back: str) -> str:
        def operation(session: Session, pending: CreatedEntities) -> str:
            card = repository.create_card_if_owned(session, deck_id, self.user_id, front, back)
            pending.cards.append(card)
            return _dump(
                {
                    "success": True,
                    "message": "Flashcard created successfully.",
                    "card": card.to_json_dict(),
                }
            )

        return self._run("creating flashcard", operation)

    def update_flashcard(self, card_id: str, front: str, back: str) -> str:
        def operation(session: Session, _pending: CreatedEntities) -> str:
            card = repository.update_card_if_owned(session, card_id, self.user_id, front, back)
            return _dump(
                {
                    "success": True,
                    "message": "Flashcard updated successfully.",
                    "card": card.to_json_dict(),
                }
            )

        return self._run("updating flashcard", operation)

    def bulk_create_flashcards(self, deck_id: str, cards: list[CardInput | dict]) -> str:
        if not cards or len(cards) < MIN_BULK_CARDS:
            return (
                "Error: Bulk create requires at least 2 flashcards. "
                "Use create_flashcard for single cards."
            )
        card_inputs = [CardInput.model_validate(card) for card in cards]

        def operation(session: Session, pending: CreatedEntities) -> str:
            created = repository.bulk_create_cards(session, deck_id, self.user_id, card_inputs)
            pending.cards.extend(created)
            return _dump(
                {
                    "success": True,
                    "message": f"Successfully created {len(created)} flashcards.",
                    "cards": [card.to_json_dict() for card in created],
                }
            )

        return self._run("creating flashcards", operation)


# =============================================================================
# Factory and dispatch
# =============================================================================


def create_tools_for_user(
    user_id: str,
    session_factory: SessionFactory,
    created: CreatedEntities | None = None,
) -> list[BaseTool]:
    """Build the assistant's tool set bound to one user.

    Args:
        user_id: Id of the authenticated user; the only identity tools use.
        session_factory: Factory for the sessions each tool call opens.
        created: Optional accumulator receiving every deck, collection and
            card the tools create.

    Returns:
        The 13 tools, in a stable order.
    """
    impl = _UserTools(user_id, session_factory, created)

    def make(
        func: Callable[..., str], name: str, description: str, schema: type[BaseModel]
    ) -> BaseTool:
        return StructuredTool.from_function(
            func=func, name=name, description=description, args_schema=schema
        )

    return [
        make(
            impl.list_collections,
            "list_collections",
            "List all user collections with their deck counts. Returns collection id, name, "
            "description, creation date, and number of decks in each collection.",
            NoInput,
        ),
        make(
            impl.view_collection,
            "view_collection",
            "Get detailed information about a specific collection including all decks "
            "within it. Each deck includes its card count.",
            CollectionIdInput,
        ),
        make(
            impl.list_decks,
            "list_decks",
            "List all user decks with their card counts. Returns deck id, name, description, "
            "creation date, and number of cards in each deck.",
            NoInput,
        ),
        make(
            impl.view_deck,
            "view_deck",
            "Get detailed information about a specific deck including all flashcards within it.",
            DeckIdInput,
        ),
        make(
            impl.create_collection,
            "create_collection",
            "Create a new collection to organize decks. Collections help group related "
            "decks together.",
            CreateCollectionInput,
        ),
        make(
            impl.create_deck,
            "create_deck",
            "Create a new deck to hold flashcards. Decks are containers for flashcards on a "
            "specific topic.",
            CreateDeckInput,
        ),
        make(
            impl.update_collection,
            "update_collection",
            "Update an existing collection's name and/or description.",
            UpdateCollectionInput,
        ),
        make(
            impl.update_deck,
            "update_deck",
            "Update an existing deck's name and/or description.",
            UpdateDeckInput,
        ),
        make(
            impl.add_deck_to_collection,
            "add_deck_to_collection",
            "Add an existing deck to an existing collection. This creates a link between "
            "the deck and collection.",
            DeckCollectionLinkInput,
        ),
        make(
            impl.remove_deck_from_collection,
            "remove_deck_from_collection",
            "Remove a deck from a collection. This only removes the link; the deck itself "
            "is not deleted.",
            DeckCollectionLinkInput,
        ),
        make(
            impl.create_flashcard,
            "create_flashcard",
            "Create a new flashcard in a specific deck. Flashcards have a front "
            "(question/prompt) and back (answer). If the user has only one deck or the "
            "context makes the target deck obvious, use it directly. Otherwise, ask the "
            "user which deck to add the flashcard to.",
            CreateFlashcardInput,
        ),
        make(
            impl.update_flashcard,
            "update_flashcard",
            "Update an existing flashcard's front and/or back text.",
            UpdateFlashcardInput,
        ),
        make(
            impl.bulk_create_flashcards,
            "bulk_create_flashcards",
            "Create multiple flashcards in a single deck. Use this tool when adding 2 or "
            "more flashcards to the same deck. For single flashcards, use create_flashcard "
            "instead.",
            BulkCreateFlashcardsInput,
        ),
    ]


def execute_tool(tools: list[BaseTool], tool_name: str, args: dict[str, Any]) -> str:
    """Run one tool call requested by the model.

    Never raises: unknown tools, argument validation failures and unexpected
    errors are all returned as text so the model can recover.
    """
    tool = next((t for t in tools if t.name == tool_name), None)
    if tool is None:
        return f'Error: Unknown tool "{tool_name}"'

    try:
        result = tool.invoke(args)
    except Exception as e:
        logger.warning(
            f"Tool {tool_name} raised",
            extra={"extra_data": {"tool": tool_name, "error": str(e)}},
            exc_info=True,
        )
        return f"Error executing tool: {e}"

    return result if isinstance(result, str) else _dump(result)
