"""Tests for the assistant's user-scoped tools."""

import json

import pytest

from cardstack.models.entities import CreatedEntities
from cardstack.services import repository
from cardstack.services.chat_tools import create_tools_for_user, execute_tool
from cardstack.services.database import session_scope

TOOL_NAMES = [
    "list_collections",
    "view_collection",
    "list_decks",
    "view_deck",
    "create_collection",
    "create_deck",
    "update_collection",
    "update_deck",
    "add_deck_to_collection",
    "remove_deck_from_collection",
    "create_flashcard",
    "update_flashcard",
    "bulk_create_flashcards",
]


@pytest.fixture
def created():
    return CreatedEntities()


@pytest.fixture
def alice_tools(session_factory, alice, created):
    return create_tools_for_user(alice.id, session_factory, created)


@pytest.fixture
def bob_tools(session_factory, bob):
    return create_tools_for_user(bob.id, session_factory)


def card_count(session_factory, user_id):
    with session_scope(session_factory) as session:
        return len(repository.get_all_user_cards(session, user_id))


def alice_data(session_factory, user_id, collection_id):
    """Everything a foreign tool call could change, as plain data."""
    with session_scope(session_factory) as session:
        return {
            "decks": [d.model_dump() for d in repository.list_decks(session, user_id)],
            "collection": repository.get_collection_with_decks(
                session, collection_id, user_id
            ).model_dump(),
            "cards": [c.model_dump() for c in repository.get_all_user_cards(session, user_id)],
        }


class TestToolSet:
    """Tests for the shape of the tool set."""

    def test_exposes_thirteen_tools_in_order(self, alice_tools):
        assert [tool.name for tool in alice_tools] == TOOL_NAMES

    def test_no_tool_deletes(self, alice_tools):
        """The assistant has no way to delete anything."""
        assert not any("delete" in tool.name for tool in alice_tools)

    def test_user_id_is_not_an_argument(self, alice_tools):
        for tool in alice_tools:
            assert "user_id" not in tool.args


class TestReadTools:
    """Tests for list/view tools."""

    def test_empty_lists_explain_themselves(self, alice_tools):
        assert "No decks found" in execute_tool(alice_tools, "list_decks", {})
        assert "No collections found" in execute_tool(alice_tools, "list_collections", {})

    def test_view_deck_returns_cards(self, alice_tools, alice_deck):
        result = json.loads(execute_tool(alice_tools, "view_deck", {"deck_id": alice_deck.id}))

        assert result["name"] == "Spanish"
        assert result["cardCount"] == 2
        assert {card["front"] for card in result["cards"]} == {"hola", "adiós"}


class TestOwnership:
    """Cross-user calls behave exactly like calls with unknown ids."""

    def test_view_foreign_deck_is_not_found(self, bob_tools, alice_deck):
        result = execute_tool(bob_tools, "view_deck", {"deck_id": alice_deck.id})

        assert result == (
            f"Deck not found with ID: {alice_deck.id}. "
            "It may not exist or may belong to another user."
        )

    def test_update_foreign_deck_does_not_mutate(self, session_factory, alice, bob_tools, alice_deck):
        result = execute_tool(
            bob_tools, "update_deck", {"deck_id": alice_deck.id, "name": "Mine now"}
        )

        assert "not found" in result
        with session_scope(session_factory) as session:
            assert repository.list_decks(session, alice.id)[0].name == "Spanish"

    @pytest.mark.parametrize(
        "tool_name, make_args",
        [
            ("view_collection", lambda ids: {"collection_id": ids["collection"]}),
            (
                "update_collection",
                lambda ids: {"collection_id": ids["collection"], "name": "Taken", "description": ""},
            ),
            (
                "add_deck_to_collection",
                lambda ids: {"collection_id": ids["collection"], "deck_id": ids["unlinked_deck"]},
            ),
            (
                "remove_deck_from_collection",
                lambda ids: {"collection_id": ids["collection"], "deck_id": ids["deck"]},
            ),
            (
                "update_flashcard",
                lambda ids: {"card_id": ids["card"], "front": "changed", "back": "changed"},
            ),
            (
                "bulk_create_flashcards",
                lambda ids: {
                    "deck_id": ids["deck"],
                    "cards": [{"front": "a", "back": "b"}, {"front": "c", "back": "d"}],
                },
            ),
        ],
    )
    def test_foreign_ids_are_not_found_and_untouched(
        self, session_factory, alice, bob, bob_tools, alice_deck, tool_name, make_args
    ):
        with session_scope(session_factory) as session:
            collection = repository.create_collection(session, alice.id, "Languages", "Spoken")
            repository.add_deck_to_collection_if_owned(session, collection.id, alice_deck.id, alice.id)
            unlinked = repository.create_deck(session, alice.id, "Unlinked")
            card = repository.get_deck_with_cards(session, alice_deck.id, alice.id).cards[0]
        ids = {
            "collection": collection.id,
            "deck": alice_deck.id,
            "unlinked_deck": unlinked.id,
            "card": card.id,
        }
        before = alice_data(session_factory, alice.id, collection.id)

        result = execute_tool(bob_tools, tool_name, make_args(ids))

        assert "not found with ID" in result
        assert "may belong to another user" in result
        assert alice_data(session_factory, alice.id, collection.id) == before
        assert card_count(session_factory, bob.id) == 0

    def test_create_card_in_foreign_deck_does_not_insert(
        self, session_factory, alice, bob, bob_tools, alice_deck
    ):
        result = execute_tool(
            bob_tools,
            "create_flashcard",
            {"deck_id": alice_deck.id, "front": "q", "back": "a"},
        )

        assert "not found" in result
        assert card_count(session_factory, alice.id) == 2
        assert card_count(session_factory, bob.id) == 0


class TestWriteTools:
    """Tests for create/update tools and created-entity tracking."""

    def test_create_deck_records_created_entity(self, alice_tools, created):
        result = json.loads(
            execute_tool(alice_tools, "create_deck", {"name": "History", "description": "Dates"})
        )

        assert result["success"] is True
        assert [deck.name for deck in created.decks] == ["History"]
        assert created.decks[0].id == result["deck"]["id"]

    def test_blank_name_is_an_error_string(self, alice_tools, created):
        result = execute_tool(alice_tools, "create_collection", {"name": "  "})

        assert result.startswith("Error:")
        assert created.collections == []

    def test_link_deck_into_collection(self, session_factory, alice, alice_tools, alice_deck):
        collection = json.loads(
            execute_tool(alice_tools, "create_collection", {"name": "Languages"})
        )["collection"]

        result = execute_tool(
            alice_tools,
            "add_deck_to_collection",
            {"collection_id": collection["id"], "deck_id": alice_deck.id},
        )

        assert "successfully added" in result
        with session_scope(session_factory) as session:
            details = repository.get_collection_with_decks(session, collection["id"], alice.id)
        assert [d.id for d in details.decks] == [alice_deck.id]


class TestBulkCreate:
    """Tests for bulk_create_flashcards."""

    def test_creates_all_cards(self, session_factory, alice, alice_tools, alice_deck, created):
        result = execute_tool(
            alice_tools,
            "bulk_create_flashcards",
            {
                "deck_id": alice_deck.id,
                "cards": [{"front": "uno", "back": "one"}, {"front": "dos", "back": "two"}],
            },
        )

        assert "Successfully created 2 flashcards" in result
        assert [card.front for card in created.cards] == ["uno", "dos"]
        assert card_count(session_factory, alice.id) == 4

    def test_rejects_single_card(self, session_factory, alice, alice_tools, alice_deck):
        result = execute_tool(
            alice_tools,
            "bulk_create_flashcards",
            {"deck_id": alice_deck.id, "cards": [{"front": "uno", "back": "one"}]},
        )

        assert result == (
            "Error: Bulk create requires at least 2 flashcards. "
            "Use create_flashcard for single cards."
        )
        assert card_count(session_factory, alice.id) == 2

    def test_rejects_blank_text_before_inserting(
        self, session_factory, alice, alice_tools, alice_deck, created
    ):
        result = execute_tool(
            alice_tools,
            "bulk_create_flashcards",
            {
                "deck_id": alice_deck.id,
                "cards": [{"front": "uno", "back": "one"}, {"front": "", "back": "two"}],
            },
        )

        assert result == "Error: Each flashcard must have non-empty front and back text."
        assert card_count(session_factory, alice.id) == 2
        assert created.cards == []


class TestExecuteTool:
    """Tests for tool dispatch."""

    def test_unknown_tool(self, alice_tools):
        assert execute_tool(alice_tools, "delete_deck", {}) == 'Error: Unknown tool "delete_deck"'

    def test_schema_violation_becomes_error_string(self, alice_tools):
        result = execute_tool(alice_tools, "create_flashcard", {"deck_id": "x"})

        assert result.startswith("Error executing tool:")
