"""Flashcard API endpoints."""

from fastapi import APIRouter, Depends

from cardstack.api.dependencies import get_current_user, repository_errors
from cardstack.models.entities import (
    BulkDeleteRequest,
    BulkDeleteResult,
    Card,
    CardInput,
    ReviewRequest,
    User,
)
from cardstack.services import repository
from cardstack.services.database import SessionFactory, get_session_factory, session_scope

router = APIRouter()


@router.get("", response_model=list[Card])
async def list_cards(
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """List every card across the user's decks."""
    with repository_errors("fetch cards"), session_scope(session_factory) as session:
        return repository.get_all_user_cards(session, user.id)


# Registered before /{card_id} so "bulk" is not taken for an id
@router.delete("/bulk", response_model=BulkDeleteResult)
async def bulk_delete_cards(
    payload: BulkDeleteRequest,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Delete several cards; ids the user does not own are ignored."""
    with repository_errors("delete cards"), session_scope(session_factory) as session:
        deleted = repository.bulk_delete_cards_if_owned(session, payload.card_ids, user.id)
    return BulkDeleteResult(deleted_count=deleted)


@router.put("/{card_id}", response_model=Card)
async def update_card(
    card_id: str,
    card: CardInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Replace a card's front and back text."""
    with repository_errors("update card"), session_scope(session_factory) as session:
        return repository.update_card_if_owned(session, card_id, user.id, card.front, card.back)


@router.delete("/{card_id}")
async def delete_card(
    card_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Delete a single card."""
    with repository_errors("delete card"), session_scope(session_factory) as session:
        repository.delete_card_if_owned(session, card_id, user.id)
    return {"success": True}


@router.post("/{card_id}/review", response_model=Card)
async def review_card(
    card_id: str,
    review: ReviewRequest,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Record a study response and reschedule the card."""
    with repository_errors("record review"), session_scope(session_factory) as session:
        return repository.record_card_review_sm2(session, card_id, user.id, review.response)
