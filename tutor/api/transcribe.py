"""Voice input API endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from tutor.api.deps import get_transcriber
from tutor.core.auth import require_auth
from tutor.core.config import Settings, get_settings
from tutor.core.errors import BadRequest, UpstreamFailure
from tutor.core.logging import get_logger
from tutor.core.rate_limiter import check_transcribe_rate_limit
from tutor.core.schemas_chat import Principal, TranscriptionResponse
from tutor.core.transcription import Transcriber

logger = get_logger(__name__)

router = APIRouter()

DEFAULT_AUDIO_FILENAME = "audio.webm"


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe_audio(
    file: Optional[UploadFile] = File(None),
    principal: Principal = Depends(require_auth),
    transcriber: Transcriber = Depends(get_transcriber),
    settings: Settings = Depends(get_settings),
) -> TranscriptionResponse:
    """
    Transcribe a recorded voice message.

    Args:
        file: Multipart audio upload (field ``file``)

    Returns:
        Recognized text, or ``""`` when the audio held nothing usable
    """
    check_transcribe_rate_limit(principal.id)

    if file is None:
        raise BadRequest("No se encontró el archivo de audio")

    data = await file.read()
    if not data:
        raise BadRequest("No se encontró el archivo de audio")
    if len(data) > settings.MAX_AUDIO_BYTES:
        raise BadRequest("El archivo de audio es demasiado grande")

    try:
        text = await transcriber.transcribe(
            file.filename or DEFAULT_AUDIO_FILENAME,
            data,
            file.content_type,
        )
    except Exception as e:
        logger.error(f"Error transcribing audio for user {principal.id}: {e}", exc_info=True)
        raise UpstreamFailure("Error al transcribir audio") from e

    return TranscriptionResponse(text=text)
