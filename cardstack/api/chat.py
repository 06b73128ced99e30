"""Assistant chat API endpoints."""

import asyncio
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException
from langchain_core.language_models import BaseChatModel

from cardstack.api.dependencies import get_current_user, repository_errors
from cardstack.core.logging_config import get_logger
from cardstack.models.entities import (
    Chat,
    ChatCreate,
    ChatTitleUpdate,
    ChatWithMessages,
    SendMessageInput,
    SendMessageResponse,
    User,
)
from cardstack.services import repository
from cardstack.services.chat_agent import process_chat_message
from cardstack.services.database import SessionFactory, get_session_factory, session_scope
from cardstack.services.llm_config import get_chat_llm
from cardstack.services.repository import EntityNotFoundError

router = APIRouter()
logger = get_logger(__name__)


def get_chat_model_factory() -> Callable[[], BaseChatModel]:
    """Dependency providing a factory for the configured chat model.

    The model is only built once the chat is known to belong to the user, so
    a missing API key never hides a 404.
    """
    return get_chat_llm


@router.get("", response_model=list[Chat])
async def list_chats(
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """List the user's chats, most recently active first."""
    with repository_errors("fetch chats"), session_scope(session_factory) as session:
        return repository.list_chats(session, user.id)


@router.post("", response_model=Chat, status_code=201)
async def create_chat(
    chat: ChatCreate,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Create an empty chat."""
    with repository_errors("create chat"), session_scope(session_factory) as session:
        return repository.create_chat(session, user.id, title=chat.title, chat_id=chat.id)


@router.get("/{chat_id}", response_model=ChatWithMessages)
async def get_chat(
    chat_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Get a chat with its messages in conversation order."""
    with repository_errors("fetch chat"), session_scope(session_factory) as session:
        return repository.get_chat_with_messages(session, chat_id, user.id)


@router.put("/{chat_id}", response_model=Chat)
async def update_chat(
    chat_id: str,
    update: ChatTitleUpdate,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Rename a chat."""
    with repository_errors("update chat"), session_scope(session_factory) as session:
        return repository.update_chat_title_if_owned(session, chat_id, user.id, update.title)


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Delete a chat and its messages."""
    with repository_errors("delete chat"), session_scope(session_factory) as session:
        repository.delete_chat_if_owned(session, chat_id, user.id)
    return {"success": True}


@router.post("/{chat_id}/messages", response_model=SendMessageResponse)
async def send_message(
    chat_id: str,
    message: SendMessageInput,
    user: User = Depends(get_current_user),
    session_factory: SessionFactory = Depends(get_session_factory),
    llm_factory: Callable[[], BaseChatModel] = Depends(get_chat_model_factory),
):
    """Send a message to the assistant and return the persisted exchange.

    The assistant may call tools that create or update the user's decks,
    collections and cards; anything it created is listed under
    ``createdEntities``.
    """
    content = message.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content is required.")

    try:
        return await asyncio.to_thread(
            process_chat_message,
            session_factory,
            user.id,
            chat_id,
            content,
            llm_factory=llm_factory,
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.exception("Chat message failed", extra={"extra_data": {"chat_id": chat_id}})
        raise HTTPException(status_code=500, detail=f"Failed to send message: {str(e)}") from e
