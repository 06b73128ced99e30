"""Collection API endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cardstack.api.dependencies import get_current_user, repository_errors
from cardstack.models.entities import (
    Collection,
    CollectionInput,
    CollectionWithDecks,
    Deck,
    DeckInput,
    DeckLinkRequest,
    User,
)
from cardstack.services import repository
from cardstack.services.database import SessionFactory, get_session_factory, session_scope

router = APIRouter()


@router.get("", response_model=list[Collection])
async def list_collections(
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """List the user's collections with deck counts."""
    with repository_errors("fetch collections"), session_scope(session_factory) as session:
        return repository.list_collections(session, user.id)


@router.post("", response_model=Collection, status_code=201)
async def create_collection(
    collection: CollectionInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Create a new collection."""
    with repository_errors("create collection"), session_scope(session_factory) as session:
        return repository.create_collection(
            session, user.id, collection.name, collection.description
        )


@router.get("/{collection_id}", response_model=CollectionWithDecks)
async def get_collection(
    collection_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Get a collection with its decks."""
    with repository_errors("fetch collection"), session_scope(session_factory) as session:
        return repository.get_collection_with_decks(session, collection_id, user.id)


@router.put("/{collection_id}", response_model=Collection)
async def update_collection(
    collection_id: str,
    updates: CollectionInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Rename or redescribe a collection."""
    with repository_errors("update collection"), session_scope(session_factory) as session:
        return repository.update_collection_if_owned(
            session, collection_id, user.id, updates.name, updates.description
        )


@router.delete("/{collection_id}")
async def delete_collection(
    collection_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Delete a collection. Its decks are kept."""
    with repository_errors("delete collection"), session_scope(session_factory) as session:
        repository.delete_collection_if_owned(session, collection_id, user.id)
    return {"success": True}


@router.post("/{collection_id}/decks")
async def add_deck(
    collection_id: str,
    link: DeckLinkRequest,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Link an existing deck into a collection. Linking twice is a no-op."""
    with repository_errors("add deck to collection"), session_scope(session_factory) as session:
        created = repository.add_deck_to_collection_if_owned(
            session, collection_id, link.deck_id, user.id
        )
    return JSONResponse({"success": True}, status_code=201 if created else 200)


@router.delete("/{collection_id}/decks")
async def remove_deck(
    collection_id: str,
    link: DeckLinkRequest,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Unlink a deck from a collection. The deck itself is kept."""
    with repository_errors("remove deck from collection"), session_scope(
        session_factory
    ) as session:
        repository.remove_deck_from_collection_if_owned(
            session, collection_id, link.deck_id, user.id
        )
    return {"success": True}


@router.post("/{collection_id}/create-deck", response_model=Deck, status_code=201)
async def create_deck_in_collection(
    collection_id: str,
    deck: DeckInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Create a new deck directly inside a collection."""
    with repository_errors("create deck"), session_scope(session_factory) as session:
        return repository.create_deck_in_collection_if_owned(
            session, collection_id, user.id, deck.name, deck.description
        )
