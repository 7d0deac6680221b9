"""Conversation store: append-only chat messages.

Messages are never updated. Ordering is by ``created_at`` ascending, so
a user turn written before its answer always precedes it.
"""

import asyncio
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError
from supabase import Client

from tutor.core.errors import PersistenceFailure
from tutor.core.schemas_chat import NewMessage, StoredMessage

TABLE = "messages"

UNIQUE_VIOLATION = "23505"


class DuplicateMessage(PersistenceFailure):
    """The message id was already stored by an earlier attempt."""


class ConversationStore:
    """Supabase-backed message persistence.

    The supabase client is synchronous; every query runs in a worker
    thread so one turn's I/O never blocks another.
    """

    def __init__(self, client: Client):
        self.client = client

    async def append(self, message: NewMessage) -> StoredMessage:
        """Insert one message.

        Raises:
            DuplicateMessage: If a message with the same id already exists
            PersistenceFailure: If the insert fails or returns no row
        """
        row = {
            "user_id": str(message.user_id),
            "role": message.role.value,
            "content": message.content,
        }
        if message.conversation_id:
            row["conversation_id"] = str(message.conversation_id)
        if message.id:
            row["id"] = str(message.id)

        try:
            result = await asyncio.to_thread(self._insert, row)
        except Exception as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise DuplicateMessage(f"Message {message.id} already stored") from e
            raise PersistenceFailure(f"Failed to insert {message.role.value} message: {e}") from e

        if not result.data:
            raise PersistenceFailure(f"Insert of {message.role.value} message returned no data")
        try:
            return StoredMessage(**result.data[0])
        except ValidationError as e:
            raise PersistenceFailure(f"Insert of {message.role.value} message returned a malformed row: {e}") from e

    async def list_by_user(self, user_id: UUID, limit: int = 500) -> list[StoredMessage]:
        """The latest ``limit`` messages of a user, oldest first."""
        result = await asyncio.to_thread(self._select, user_id, None, limit)
        return _oldest_first(result.data)

    async def list_by_conversation(
        self,
        user_id: UUID,
        conversation_id: UUID,
        limit: int = 500,
    ) -> list[StoredMessage]:
        """The latest ``limit`` messages of one conversation owned by ``user_id``, oldest first."""
        result = await asyncio.to_thread(self._select, user_id, conversation_id, limit)
        return _oldest_first(result.data)

    def _insert(self, row: dict[str, Any]) -> Any:
        return self.client.table(TABLE).insert(row).execute()

    def _select(self, user_id: UUID, conversation_id: Optional[UUID], limit: int) -> Any:
        query = self.client.table(TABLE).select("*").eq("user_id", str(user_id))
        if conversation_id:
            query = query.eq("conversation_id", str(conversation_id))
        return query.order("created_at", desc=True).limit(limit).execute()


def _oldest_first(rows: Optional[list[dict[str, Any]]]) -> list[StoredMessage]:
    # Rows arrive newest first so the limit keeps the most recent ones
    return [StoredMessage(**row) for row in reversed(rows or [])]
