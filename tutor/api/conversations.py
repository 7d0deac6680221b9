"""Conversation history API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from tutor.api.deps import get_conversation_registry, get_conversation_store
from tutor.core.auth import require_auth
from tutor.core.errors import NotFound
from tutor.core.logging import get_logger
from tutor.core.schemas_chat import (
    Conversation,
    ConversationCreate,
    ConversationListResponse,
    MessageListResponse,
    MessageOut,
    Principal,
)
from tutor.db.conversations import ConversationRegistry
from tutor.db.messages import ConversationStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: Optional[UUID] = Query(None, alias="conversationId"),
    limit: int = Query(500, ge=1, le=1000, description="Maximum number of messages to return"),
    principal: Principal = Depends(require_auth),
    store: ConversationStore = Depends(get_conversation_store),
) -> MessageListResponse:
    """
    Get the caller's messages in creation order.

    Args:
        conversation_id: Restrict to one conversation (optional)
        limit: Maximum number of messages

    Returns:
        ``{messages: [{role, content}]}``
    """
    if conversation_id:
        messages = await store.list_by_conversation(principal.id, conversation_id, limit=limit)
    else:
        messages = await store.list_by_user(principal.id, limit=limit)

    return MessageListResponse(
        messages=[MessageOut(role=m.role, content=m.content) for m in messages]
    )


@router.get("/conversations", response_model=ConversationListResponse, response_model_by_alias=True)
async def list_conversations(
    limit: int = Query(50, ge=1, le=200, description="Maximum number of conversations to return"),
    principal: Principal = Depends(require_auth),
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> ConversationListResponse:
    """List the caller's conversations, newest first."""
    conversations = await registry.list_for_user(principal.id, limit=limit)
    return ConversationListResponse(conversations=conversations)


@router.post(
    "/conversations",
    response_model=Conversation,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    body: Optional[ConversationCreate] = None,
    principal: Principal = Depends(require_auth),
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> Conversation:
    """Start a new, empty conversation ("new chat")."""
    title = body.title.strip() if body and body.title else None
    conversation = await registry.create(principal.id, title=title or None)
    logger.info(f"Created conversation {conversation.id} for user {principal.id}")
    return conversation


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: UUID,
    principal: Principal = Depends(require_auth),
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> Response:
    """Delete one of the caller's conversations together with its messages."""
    deleted = await registry.delete(principal.id, conversation_id)
    if not deleted:
        raise NotFound("Conversación no encontrada")

    logger.info(f"Deleted conversation {conversation_id} for user {principal.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
