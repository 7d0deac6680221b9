"""Pydantic schemas for chat turns, conversations and transcription."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Message author role."""
    USER = "user"
    ASSISTANT = "assistant"


class Principal(BaseModel):
    """Authenticated user for the lifetime of one request."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: Optional[str] = None
    display_name: Optional[str] = None
    access_token: str = Field(default="", repr=False)


# ============================================================================
# Chat
# ============================================================================


class HistoryItem(BaseModel):
    """One prior message as sent by the client."""
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    """Body of ``POST /chat``."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    history: list[HistoryItem] = Field(default_factory=list)
    student_name: Optional[str] = Field(default=None, alias="studentName")
    conversation_id: Optional[UUID] = Field(default=None, alias="conversationId")


class ChatReply(BaseModel):
    """Non-incremental response of ``POST /chat``."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str
    conversation_id: Optional[UUID] = Field(default=None, alias="conversationId")


class TurnRequest(BaseModel):
    """Everything the orchestrator needs to answer one user message."""
    principal: Optional[Principal]
    message: str
    history: list[HistoryItem] = Field(default_factory=list)
    conversation_id: Optional[UUID] = None
    student_name: Optional[str] = None


# ============================================================================
# Persistence
# ============================================================================


class NewMessage(BaseModel):
    """A message about to be appended to the store.

    A pre-assigned ``id`` makes the insert safe to retry.
    """
    user_id: UUID
    role: MessageRole
    content: str
    conversation_id: Optional[UUID] = None
    id: Optional[UUID] = None


class StoredMessage(NewMessage):
    """A persisted, immutable message."""
    id: UUID
    created_at: datetime


class MessageOut(BaseModel):
    """History entry returned to the client."""
    role: MessageRole
    content: str


class MessageListResponse(BaseModel):
    messages: list[MessageOut]


class Conversation(BaseModel):
    """Conversation metadata."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    user_id: UUID = Field(exclude=True)
    title: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")


class ConversationCreate(BaseModel):
    """Body of ``POST /conversations``."""
    title: Optional[str] = Field(default=None, max_length=120)


class ConversationListResponse(BaseModel):
    conversations: list[Conversation]


# ============================================================================
# Transcription
# ============================================================================


class TranscriptionResponse(BaseModel):
    """Recognized text; empty when the transcript was filtered out."""
    text: str
