"""Completion orchestrator: answer one user message and record the turn.

Order of operations for every turn:

1. Persist the user message (before any model call, so the question
   survives a model failure or a client that goes away).
2. Retrieve grounding context, best-effort.
3. Assemble the prompt (persona, context, windowed history, message).
4. Invoke the model, atomically or as a stream.
5. Relay fragments to the caller while accumulating the full reply.
6. Persist the assistant reply if it is non-empty. The stream closes
   only after this write, trading a little latency for durability.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Optional
from uuid import uuid4

import anyio

from tutor.core.config import Settings
from tutor.core.errors import BadRequest, PersistenceFailure, Unauthorized, UpstreamFailure
from tutor.core.llm import CompletionClient
from tutor.core.logging import get_logger, log_with_context
from tutor.core.prompts import build_messages
from tutor.core.retrieval import ContextRetriever
from tutor.core.retrieval_format import build_context_block
from tutor.core.schemas_chat import MessageRole, NewMessage, StoredMessage, TurnRequest
from tutor.db.messages import ConversationStore, DuplicateMessage

logger = get_logger(__name__)


class TutorOrchestrator:
    """Runs chat turns against injected store, retriever and model handles."""

    def __init__(
        self,
        store: ConversationStore,
        retriever: ContextRetriever,
        llm: CompletionClient,
        settings: Settings,
    ):
        self.store = store
        self.retriever = retriever
        self.llm = llm
        self.settings = settings

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def handle_turn(self, turn: TurnRequest) -> str:
        """
        Answer a message with a single complete reply.

        Raises:
            Unauthorized: No principal (nothing is persisted)
            BadRequest: Empty or oversized message (nothing is persisted)
            PersistenceFailure: The user turn could not be stored
            UpstreamFailure: The model call failed (the user turn is kept)
        """
        messages = await self._prepare(turn)

        try:
            reply = await self.llm.complete(messages)
        except Exception as e:
            log_with_context(
                logger, logging.ERROR, f"Model invocation failed: {e}",
                user_id=str(turn.principal.id), conversation_id=str(turn.conversation_id),
            )
            raise UpstreamFailure(str(e)) from e

        await self._persist_reply(turn, reply)
        return reply

    async def stream_turn(self, turn: TurnRequest) -> "ReplyStream":
        """
        Answer a message incrementally.

        Steps 1-4 run eagerly and the relay is advanced to the model's first
        fragment, so failures up to that point raise here (and can become a
        proper error response) instead of breaking an already-open stream.

        Returns:
            Async iterator of text fragments; exhausting or closing it
            persists the reply
        """
        messages = await self._prepare(turn)

        relay = self._relay(turn, self.llm.stream(messages))
        try:
            first: Optional[str] = await anext(relay)
        except StopAsyncIteration:
            first = None

        return ReplyStream(relay, first)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _prepare(self, turn: TurnRequest) -> list[dict[str, str]]:
        """Validate, persist the user turn, retrieve context, assemble prompt."""
        if turn.principal is None:
            raise Unauthorized()

        message = turn.message.strip()
        if not message:
            raise BadRequest("El mensaje no puede estar vacío")
        if len(message) > self.settings.MAX_MESSAGE_CHARS:
            raise BadRequest("El mensaje es demasiado largo")

        await self.store.append(
            NewMessage(
                user_id=turn.principal.id,
                role=MessageRole.USER,
                content=turn.message,
                conversation_id=turn.conversation_id,
            )
        )

        context_block = await self._retrieve_context(message)

        messages = build_messages(
            message=turn.message,
            history=turn.history,
            student_name=turn.student_name or turn.principal.display_name,
            context_block=context_block,
            max_history=self.settings.MAX_HISTORY_MESSAGES,
        )

        log_with_context(
            logger, logging.INFO, "Chat prompt assembled",
            user_id=str(turn.principal.id),
            conversation_id=str(turn.conversation_id),
            history_msgs=len(messages) - (3 if context_block else 2),
            has_context=bool(context_block),
        )
        return messages

    async def _retrieve_context(self, query: str) -> str:
        """Never raises: any retrieval problem means "no context"."""
        try:
            text = await self.retriever.search(query)
        except Exception as e:
            logger.warning(f"Context retrieval failed (non-fatal): {e}")
            return ""
        return build_context_block(text or "")

    async def _relay(
        self,
        turn: TurnRequest,
        fragments: AsyncIterator[str],
    ) -> AsyncGenerator[str, None]:
        """Forward fragments while accumulating them for persistence."""
        accumulated: list[str] = []
        finished = False
        disconnected = False

        try:
            async for fragment in fragments:
                accumulated.append(fragment)
                yield fragment
            finished = True
        except (asyncio.CancelledError, GeneratorExit):
            disconnected = True
            raise
        except Exception as e:
            log_with_context(
                logger, logging.ERROR, f"Model stream failed: {e}",
                user_id=str(turn.principal.id),
                conversation_id=str(turn.conversation_id),
                chars=sum(len(f) for f in accumulated),
            )
            raise UpstreamFailure(str(e)) from e
        finally:
            # Shielded: stop the producer and record the reply even when the
            # consumer was cancelled by a client disconnect.
            with anyio.CancelScope(shield=True):
                aclose = getattr(fragments, "aclose", None)
                if aclose is not None:
                    try:
                        await aclose()
                    except Exception as e:
                        logger.debug(f"Error closing model stream: {e}")

                if finished or disconnected:
                    reply = "".join(accumulated)
                    if disconnected and reply:
                        log_with_context(
                            logger, logging.INFO, "Client disconnected; saving partial reply",
                            user_id=str(turn.principal.id), chars=len(reply),
                        )
                    await self._persist_reply(turn, reply)

    async def _persist_reply(self, turn: TurnRequest, reply: str) -> Optional[StoredMessage]:
        """
        Store the assistant reply with bounded retry.

        Failures are logged and swallowed: the caller already has the answer.
        The id is fixed up front so a retry can never store it twice.
        """
        if not reply:
            return None

        message = NewMessage(
            id=uuid4(),
            user_id=turn.principal.id,
            role=MessageRole.ASSISTANT,
            content=reply,
            conversation_id=turn.conversation_id,
        )
        attempts = 1 + max(0, self.settings.PERSIST_RETRIES)

        for attempt in range(1, attempts + 1):
            try:
                return await self.store.append(message)
            except DuplicateMessage:
                # An earlier attempt was stored even though it reported failure
                return None
            except PersistenceFailure as e:
                if attempt == attempts:
                    log_with_context(
                        logger, logging.ERROR, f"Assistant reply not saved: {e}",
                        user_id=str(turn.principal.id),
                        conversation_id=str(turn.conversation_id),
                        attempts=attempts,
                    )
                    return None
                delay = self.settings.PERSIST_BACKOFF_SECONDS * (2 ** (attempt - 1))
                logger.warning(f"Assistant reply write failed (attempt {attempt}), retrying in {delay}s")
                await asyncio.sleep(delay)

        return None


class ReplyStream:
    """Reply fragments of a turn whose relay has already started.

    The relay is suspended on its first fragment, so closing this object,
    or dropping it unread, still runs the relay's cleanup.
    """

    def __init__(self, relay: AsyncGenerator[str, None], first: Optional[str]):
        self._relay = relay
        self._pending = first

    def __aiter__(self) -> "ReplyStream":
        return self

    async def __anext__(self) -> str:
        if self._pending is not None:
            fragment, self._pending = self._pending, None
            return fragment
        return await self._relay.__anext__()

    async def aclose(self) -> None:
        self._pending = None
        await self._relay.aclose()
