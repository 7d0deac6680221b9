"""API router for tutor endpoints."""

from fastapi import APIRouter

from tutor.api import chat, conversations, transcribe

router = APIRouter()

# Chat turns (streamed or JSON)
router.include_router(chat.router, tags=["chat"])

# Voice input
router.include_router(transcribe.router, tags=["transcribe"])

# Conversation history and "new chat"
router.include_router(conversations.router, tags=["conversations"])
