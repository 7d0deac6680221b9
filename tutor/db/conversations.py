"""Database operations for conversations."""

import asyncio
from typing import Any, Optional
from uuid import UUID

from supabase import Client

from tutor.core.schemas_chat import Conversation

TABLE = "conversations"
TITLE_MAX_CHARS = 60


def title_from_message(message: str) -> str:
    """Derive a sidebar title from the first user message."""
    text = " ".join(message.split())
    if len(text) <= TITLE_MAX_CHARS:
        return text
    return text[:TITLE_MAX_CHARS].rstrip() + "..."


class ConversationRegistry:
    """Create, list and delete conversation records for a user."""

    def __init__(self, client: Client):
        self.client = client

    async def create(self, user_id: UUID, title: Optional[str] = None) -> Conversation:
        """Create a new, empty conversation."""
        row: dict[str, Any] = {"user_id": str(user_id)}
        if title:
            row["title"] = title

        def _insert() -> Any:
            return self.client.table(TABLE).insert(row).execute()

        result = await asyncio.to_thread(_insert)
        if not result.data:
            raise RuntimeError("Failed to create conversation - no data returned")
        return Conversation(**result.data[0])

    async def get(self, user_id: UUID, conversation_id: UUID) -> Optional[Conversation]:
        """Get a conversation if it exists and belongs to the user."""

        def _select() -> Any:
            return (
                self.client.table(TABLE)
                .select("*")
                .eq("id", str(conversation_id))
                .eq("user_id", str(user_id))
                .execute()
            )

        result = await asyncio.to_thread(_select)
        if result.data:
            return Conversation(**result.data[0])
        return None

    async def list_for_user(self, user_id: UUID, limit: int = 50) -> list[Conversation]:
        """List a user's conversations, newest first."""

        def _select() -> Any:
            return (
                self.client.table(TABLE)
                .select("*")
                .eq("user_id", str(user_id))
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )

        result = await asyncio.to_thread(_select)
        return [Conversation(**row) for row in result.data or []]

    async def delete(self, user_id: UUID, conversation_id: UUID) -> bool:
        """Delete a conversation; its messages go with it (ON DELETE CASCADE)."""

        def _delete() -> Any:
            return (
                self.client.table(TABLE)
                .delete()
                .eq("id", str(conversation_id))
                .eq("user_id", str(user_id))
                .execute()
            )

        result = await asyncio.to_thread(_delete)
        return len(result.data or []) > 0
