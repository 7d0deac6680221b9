"""Tests for voice transcription and the hallucination filter."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tests.fakes.fake_tutor import PRINCIPAL
from tutor.api.deps import get_transcriber
from tutor.core.auth import get_current_user
from tutor.core.errors import GENERIC_ERROR_MESSAGE
from tutor.core.transcription import (
    Transcriber,
    denylist_predicate,
    filter_transcript,
    is_hallucination,
)
from tutor.main import app


def _openai_client(text="¿Qué es el dolo?", error=None):
    client = MagicMock()
    if error:
        client.audio.transcriptions.create = AsyncMock(side_effect=error)
    else:
        client.audio.transcriptions.create = AsyncMock(return_value=MagicMock(text=text))
    return client


class TestFilterTranscript:
    """Hallucination filter semantics."""

    def test_keeps_normal_speech(self):
        assert filter_transcript("  ¿Qué es la legítima defensa?  ") == "¿Qué es la legítima defensa?"

    def test_drops_too_short(self):
        assert filter_transcript("a") == ""
        assert filter_transcript("   ") == ""
        assert filter_transcript("") == ""

    def test_two_characters_is_enough(self):
        assert filter_transcript("sí") == "sí"

    def test_drops_denylisted_phrase_case_insensitive(self):
        assert filter_transcript("Subtítulos realizados por la comunidad de AMARA.ORG") == ""
        assert filter_transcript("¡gracias por ver el vídeo!") == ""

    def test_substring_match_anywhere(self):
        assert filter_transcript("y entonces hubo silencio") == ""

    def test_custom_predicate(self):
        only_numbers = lambda text: text.isdigit()  # noqa: E731
        assert filter_transcript("12345", only_numbers) == ""
        assert filter_transcript("Amara.org", only_numbers) == "Amara.org"

    def test_denylist_predicate_ignores_empty_phrases(self):
        predicate = denylist_predicate(["", "spam"])
        assert predicate("SPAM total")
        assert not predicate("hola")

    def test_default_predicate(self):
        assert is_hallucination("Transcribed by ESO")
        assert not is_hallucination("El contrato es nulo")


class TestTranscriber:
    """OpenAI speech-to-text wrapper."""

    @pytest.mark.asyncio
    async def test_passes_model_and_language(self):
        client = _openai_client()
        transcriber = Transcriber(client, model="whisper-1", language="es")

        text = await transcriber.transcribe("voz.webm", b"audio", "audio/webm")

        assert text == "¿Qué es el dolo?"
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["language"] == "es"
        assert kwargs["file"] == ("voz.webm", b"audio", "audio/webm")

    @pytest.mark.asyncio
    async def test_filters_result(self):
        transcriber = Transcriber(_openai_client(text="¡Gracias!"))
        assert await transcriber.transcribe("voz.webm", b"audio") == ""


# ──────────────────────────────────────────────────────────────────────
# POST /transcribe
# ──────────────────────────────────────────────────────────────────────


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def openai_client():
    return _openai_client()


@pytest.fixture
def authed(openai_client):
    app.dependency_overrides[get_current_user] = lambda: PRINCIPAL
    app.dependency_overrides[get_transcriber] = lambda: Transcriber(openai_client)
    yield
    app.dependency_overrides.clear()


class TestTranscribeEndpoint:
    """Multipart upload handling."""

    def test_returns_text(self, client, authed):
        response = client.post(
            "/transcribe", files={"file": ("voz.webm", b"fake-audio", "audio/webm")}
        )
        assert response.status_code == 200
        assert response.json() == {"text": "¿Qué es el dolo?"}

    def test_hallucination_returns_empty_text(self, client, authed, openai_client):
        openai_client.audio.transcriptions.create.return_value = MagicMock(text="Subtítulos por Amara.org")

        response = client.post(
            "/transcribe", files={"file": ("voz.webm", b"fake-audio", "audio/webm")}
        )

        assert response.status_code == 200
        assert response.json() == {"text": ""}

    def test_missing_file_returns_400(self, client, authed):
        response = client.post("/transcribe")
        assert response.status_code == 400
        assert response.json() == {"error": "No se encontró el archivo de audio"}

    def test_empty_file_returns_400(self, client, authed):
        response = client.post("/transcribe", files={"file": ("voz.webm", b"", "audio/webm")})
        assert response.status_code == 400

    def test_upstream_failure_returns_500(self, client, authed, openai_client):
        openai_client.audio.transcriptions.create.side_effect = RuntimeError("quota exceeded")

        response = client.post(
            "/transcribe", files={"file": ("voz.webm", b"fake-audio", "audio/webm")}
        )

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_ERROR_MESSAGE}

    def test_requires_session(self, client, authed):
        app.dependency_overrides[get_current_user] = lambda: None
        response = client.post(
            "/transcribe", files={"file": ("voz.webm", b"fake-audio", "audio/webm")}
        )
        assert response.status_code == 401
