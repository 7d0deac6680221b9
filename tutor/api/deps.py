"""Dependency providers for API routes.

Every external handle (settings, search, model, speech-to-text, stores)
is built here and injected, so tests can swap any of them through
``app.dependency_overrides``.
"""

from collections.abc import Iterator
from functools import lru_cache

from fastapi import Depends
from supabase import Client

from tutor.core.auth import require_auth
from tutor.core.chat_stream import TutorOrchestrator
from tutor.core.config import Settings, get_settings
from tutor.core.llm import CompletionClient, get_llm
from tutor.core.retrieval import ContextRetriever, get_retriever
from tutor.core.schemas_chat import Principal
from tutor.core.transcription import Transcriber
from tutor.db.conversations import ConversationRegistry
from tutor.db.messages import ConversationStore
from tutor.db.supabase_client import get_user_supabase, release_user_supabase


@lru_cache(maxsize=1)
def get_context_retriever() -> ContextRetriever:
    return get_retriever(get_settings())


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    return CompletionClient(get_llm())


@lru_cache(maxsize=1)
def get_transcriber() -> Transcriber:
    return Transcriber.from_settings(get_settings())


def get_request_supabase(principal: Principal = Depends(require_auth)) -> Iterator[Client]:
    """One Supabase client per request, bound to the caller's session.

    Closed once the response (including a streamed body) has been sent.
    """
    client = get_user_supabase(principal.access_token)
    try:
        yield client
    finally:
        release_user_supabase(client)


def get_conversation_store(client: Client = Depends(get_request_supabase)) -> ConversationStore:
    return ConversationStore(client)


def get_conversation_registry(client: Client = Depends(get_request_supabase)) -> ConversationRegistry:
    return ConversationRegistry(client)


def get_orchestrator(
    store: ConversationStore = Depends(get_conversation_store),
    retriever: ContextRetriever = Depends(get_context_retriever),
    llm: CompletionClient = Depends(get_completion_client),
    settings: Settings = Depends(get_settings),
) -> TutorOrchestrator:
    return TutorOrchestrator(store=store, retriever=retriever, llm=llm, settings=settings)
