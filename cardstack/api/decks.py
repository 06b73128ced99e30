"""Deck API endpoints."""

from fastapi import APIRouter, Depends, Query

from cardstack.api.dependencies import get_current_user, repository_errors
from cardstack.models.entities import (
    Card,
    CardImportRequest,
    CardInput,
    Deck,
    DeckInput,
    DeckWithCards,
    ResetResult,
    User,
)
from cardstack.services import repository
from cardstack.services.database import SessionFactory, get_session_factory, session_scope

router = APIRouter()


@router.get("", response_model=list[Deck])
async def list_decks(
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """List the user's decks with card counts."""
    with repository_errors("fetch decks"), session_scope(session_factory) as session:
        return repository.list_decks(session, user.id)


@router.post("", response_model=Deck, status_code=201)
async def create_deck(
    deck: DeckInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Create a new deck."""
    with repository_errors("create deck"), session_scope(session_factory) as session:
        return repository.create_deck(session, user.id, deck.name, deck.description)


@router.get("/{deck_id}", response_model=DeckWithCards)
async def get_deck(
    deck_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Get a deck with its cards, newest first."""
    with repository_errors("fetch deck"), session_scope(session_factory) as session:
        return repository.get_deck_with_cards(session, deck_id, user.id)


@router.put("/{deck_id}", response_model=Deck)
async def update_deck(
    deck_id: str,
    updates: DeckInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Rename or redescribe a deck."""
    with repository_errors("update deck"), session_scope(session_factory) as session:
        return repository.update_deck_if_owned(
            session, deck_id, user.id, updates.name, updates.description
        )


@router.delete("/{deck_id}")
async def delete_deck(
    deck_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Delete a deck and its cards."""
    with repository_errors("delete deck"), session_scope(session_factory) as session:
        repository.delete_deck_if_owned(session, deck_id, user.id)
    return {"success": True}


@router.post("/{deck_id}/cards", response_model=Card, status_code=201)
async def create_card(
    deck_id: str,
    card: CardInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Add one card to a deck."""
    with repository_errors("create card"), session_scope(session_factory) as session:
        return repository.create_card_if_owned(session, deck_id, user.id, card.front, card.back)


@router.post("/{deck_id}/import", response_model=list[Card], status_code=201)
async def import_cards(
    deck_id: str,
    payload: CardImportRequest,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Import several cards into a deck in one transaction."""
    with repository_errors("import cards"), session_scope(session_factory) as session:
        return repository.bulk_create_cards(session, deck_id, user.id, payload.cards)


@router.post("/{deck_id}/reset", response_model=ResetResult)
async def reset_deck(
    deck_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Reset the review progress of every card in a deck."""
    with repository_errors("reset deck progress"), session_scope(session_factory) as session:
        count = repository.reset_deck_cards(session, deck_id, user.id)
    return ResetResult(reset_count=count)


@router.get("/{deck_id}/study", response_model=list[Card])
async def study_queue(
    deck_id: str,
    include_all: bool = Query(False, alias="includeAll"),
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Cards due for review, shuffled within the same due date."""
    with repository_errors("build study queue"), session_scope(session_factory) as session:
        return repository.get_study_queue(session, deck_id, user.id, include_all=include_all)
