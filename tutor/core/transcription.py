"""Voice input: speech-to-text plus a hallucination filter.

Speech models sometimes "hear" subtitle credits or sign-offs in silence.
The default filter is a static denylist; any ``str -> bool`` predicate
can replace it.
"""

from collections.abc import Callable

from openai import AsyncOpenAI

from tutor.core.config import Settings
from tutor.core.logging import get_logger

logger = get_logger(__name__)

MIN_TRANSCRIPT_CHARS = 2

HALLUCINATION_DENYLIST = (
    "Amara.org",
    "Subtítulos",
    "transcribed by",
    "Copyright",
    "instrucciones",
    "suscríbete",
    "plara",
    "aleja",
    "silencio",
    "¡Gracias por ver el vídeo!",
    "¡Gracias!",
    "¡Adios!",
)

HallucinationPredicate = Callable[[str], bool]


def denylist_predicate(phrases: tuple[str, ...] | list[str]) -> HallucinationPredicate:
    """Build a case-insensitive substring predicate over ``phrases``."""
    lowered = [p.lower() for p in phrases if p]

    def _matches(text: str) -> bool:
        haystack = text.lower()
        return any(phrase in haystack for phrase in lowered)

    return _matches


is_hallucination: HallucinationPredicate = denylist_predicate(HALLUCINATION_DENYLIST)


def filter_transcript(text: str, predicate: HallucinationPredicate = is_hallucination) -> str:
    """
    Return the transcript, or "" if it looks like a hallucination.

    Args:
        text: Raw recognized text
        predicate: Returns True for text that must be discarded

    Returns:
        The stripped text, or "" when too short or matched by ``predicate``
    """
    cleaned = (text or "").strip()
    if len(cleaned) < MIN_TRANSCRIPT_CHARS or predicate(cleaned):
        if cleaned:
            logger.info(f"Transcript discarded as hallucination: {cleaned[:80]!r}")
        return ""
    return cleaned


class Transcriber:
    """OpenAI speech-to-text client with a pluggable filter."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini-transcribe",
        language: str = "es",
        predicate: HallucinationPredicate = is_hallucination,
    ):
        self.client = client
        self.model = model
        self.language = language
        self.predicate = predicate

    @classmethod
    def from_settings(cls, settings: Settings) -> "Transcriber":
        return cls(
            client=AsyncOpenAI(api_key=settings.OPENAI_API_KEY),
            model=settings.TRANSCRIBE_MODEL,
            language=settings.TRANSCRIBE_LANGUAGE,
        )

    async def transcribe(self, filename: str, data: bytes, content_type: str | None = None) -> str:
        """
        Transcribe an audio blob and filter the result.

        Raises:
            openai.OpenAIError: If the speech-to-text call fails
        """
        upload = (filename, data, content_type) if content_type else (filename, data)
        transcription = await self.client.audio.transcriptions.create(
            file=upload,
            model=self.model,
            language=self.language,
        )
        return filter_transcript(transcription.text, self.predicate)
