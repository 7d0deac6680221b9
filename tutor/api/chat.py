"""Chat tutor API endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse

from tutor.api.deps import get_conversation_registry, get_orchestrator
from tutor.core.auth import require_auth
from tutor.core.chat_stream import TutorOrchestrator
from tutor.core.config import Settings, get_settings
from tutor.core.errors import BadRequest, NotFound, TutorError, UpstreamFailure
from tutor.core.logging import get_logger
from tutor.core.rate_limiter import check_chat_rate_limit
from tutor.core.schemas_chat import ChatReply, ChatRequest, Principal, TurnRequest
from tutor.db.conversations import ConversationRegistry, title_from_message

logger = get_logger(__name__)

router = APIRouter()

CONVERSATION_ID_HEADER = "X-Conversation-Id"


@router.post("/chat", response_model=None)
async def chat_with_tutor(
    request: ChatRequest,
    stream: bool = Query(True, description="Deliver the reply incrementally as plain text"),
    principal: Principal = Depends(require_auth),
    registry: ConversationRegistry = Depends(get_conversation_registry),
    orchestrator: TutorOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse | JSONResponse:
    """
    Answer a student's message.

    This endpoint:
    1. Resolves the conversation (must be owned by the caller, or is
       created on the first message when no id is given)
    2. Hands the turn to the orchestrator, which stores the question,
       grounds it with document search and calls the model
    3. Returns the reply as a plain-text stream or as JSON

    Args:
        request: Message, prior history, optional student name and conversation id
        stream: Incremental (default) or single JSON reply

    Returns:
        StreamingResponse of text fragments, or ``{reply, conversationId}``
    """
    check_chat_rate_limit(principal.id)

    # Reject before the conversation row is written
    message = request.message.strip()
    if not message:
        raise BadRequest("El mensaje no puede estar vacío")
    if len(message) > settings.MAX_MESSAGE_CHARS:
        raise BadRequest("El mensaje es demasiado largo")

    try:
        conversation_id = await _resolve_conversation(registry, principal, request)

        turn = TurnRequest(
            principal=principal,
            message=request.message,
            history=request.history,
            conversation_id=conversation_id,
            student_name=request.student_name,
        )

        if not stream:
            reply = await orchestrator.handle_turn(turn)
            body = ChatReply(reply=reply, conversation_id=conversation_id)
            return JSONResponse(content=body.model_dump(mode="json", by_alias=True))

        fragments = await orchestrator.stream_turn(turn)

        headers = {
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
        if conversation_id:
            headers[CONVERSATION_ID_HEADER] = str(conversation_id)

        return StreamingResponse(
            fragments,
            media_type="text/plain; charset=utf-8",
            headers=headers,
        )

    except TutorError:
        raise
    except Exception as e:
        logger.error(f"Error in chat endpoint: {e}", exc_info=True)
        raise UpstreamFailure(str(e)) from e


async def _resolve_conversation(
    registry: ConversationRegistry,
    principal: Principal,
    request: ChatRequest,
) -> UUID:
    """Return the conversation id for this turn."""
    if request.conversation_id:
        conversation = await registry.get(principal.id, request.conversation_id)
        if not conversation:
            raise NotFound("Conversación no encontrada")
        return conversation.id

    conversation = await registry.create(principal.id, title=title_from_message(request.message))
    logger.info(f"Created conversation {conversation.id} for user {principal.id}")
    return conversation.id
