"""Tests for conversation history endpoints."""

import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tests.fakes.fake_tutor import (
    OTHER_USER_ID,
    PRINCIPAL,
    FakeConversationRegistry,
    FakeConversationStore,
)
from tutor.api.deps import get_conversation_registry, get_conversation_store
from tutor.core.auth import get_current_user
from tutor.core.schemas_chat import MessageRole, NewMessage
from tutor.main import app


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def store():
    return FakeConversationStore()


@pytest.fixture
def registry():
    return FakeConversationRegistry()


@pytest.fixture
def authed(store, registry):
    app.dependency_overrides[get_current_user] = lambda: PRINCIPAL
    app.dependency_overrides[get_conversation_store] = lambda: store
    app.dependency_overrides[get_conversation_registry] = lambda: registry
    yield
    app.dependency_overrides.clear()


def _append(store, user_id, role, content, conversation_id=None):
    asyncio.run(
        store.append(
            NewMessage(user_id=user_id, role=role, content=content, conversation_id=conversation_id)
        )
    )


class TestListMessages:
    """GET /messages"""

    def test_messages_in_creation_order(self, client, store, authed):
        _append(store, PRINCIPAL.id, MessageRole.USER, "¿Qué es el dolo?")
        _append(store, PRINCIPAL.id, MessageRole.ASSISTANT, "Buena pregunta, Ana.")

        response = client.get("/messages")

        assert response.status_code == 200
        assert response.json() == {
            "messages": [
                {"role": "user", "content": "¿Qué es el dolo?"},
                {"role": "assistant", "content": "Buena pregunta, Ana."},
            ]
        }

    def test_messages_scoped_to_principal(self, client, store, authed):
        _append(store, OTHER_USER_ID, MessageRole.USER, "mensaje ajeno")
        _append(store, PRINCIPAL.id, MessageRole.USER, "mío")

        messages = client.get("/messages").json()["messages"]

        assert [m["content"] for m in messages] == ["mío"]

    def test_messages_filtered_by_conversation(self, client, store, authed):
        conversation_id = uuid4()
        _append(store, PRINCIPAL.id, MessageRole.USER, "otra charla")
        _append(store, PRINCIPAL.id, MessageRole.USER, "esta charla", conversation_id)

        response = client.get("/messages", params={"conversationId": str(conversation_id)})

        assert [m["content"] for m in response.json()["messages"]] == ["esta charla"]

    def test_requires_session(self, client, authed):
        app.dependency_overrides[get_current_user] = lambda: None
        response = client.get("/messages")
        assert response.status_code == 401
        assert response.json() == {"error": "No autorizado"}


class TestConversations:
    """GET/POST/DELETE /conversations"""

    def test_create_with_title(self, client, registry, authed):
        response = client.post("/conversations", json={"title": "Derecho penal"})

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Derecho penal"
        assert "createdAt" in data
        assert "user_id" not in data
        assert len(registry.conversations) == 1

    def test_create_without_body(self, client, registry, authed):
        response = client.post("/conversations")

        assert response.status_code == 201
        assert response.json()["title"] is None

    def test_list_newest_first(self, client, registry, authed):
        asyncio.run(registry.create(PRINCIPAL.id, title="primera"))
        asyncio.run(registry.create(PRINCIPAL.id, title="segunda"))
        asyncio.run(registry.create(OTHER_USER_ID, title="ajena"))

        response = client.get("/conversations")

        assert response.status_code == 200
        titles = [c["title"] for c in response.json()["conversations"]]
        assert titles == ["segunda", "primera"]

    def test_delete_owned(self, client, registry, authed):
        conversation = asyncio.run(registry.create(PRINCIPAL.id, title="borrar"))

        response = client.delete(f"/conversations/{conversation.id}")

        assert response.status_code == 204
        assert registry.conversations == {}

    def test_delete_foreign_returns_404(self, client, registry, authed):
        conversation = asyncio.run(registry.create(OTHER_USER_ID, title="ajena"))

        response = client.delete(f"/conversations/{conversation.id}")

        assert response.status_code == 404
        assert "error" in response.json()
        assert conversation.id in registry.conversations

    def test_delete_unknown_returns_404(self, client, authed):
        response = client.delete(f"/conversations/{uuid4()}")
        assert response.status_code == 404
