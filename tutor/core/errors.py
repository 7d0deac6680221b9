"""Error taxonomy and FastAPI exception handlers.

Every error leaves the service as ``{"error": "<message>"}``. Internal
failures collapse to one generic message so upstream details never
reach the client.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from tutor.core.logging import get_logger

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Error interno en el servidor"


class TutorError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(TutorError):
    """No valid session. Terminal, no side effects."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "No autorizado"


class BadRequest(TutorError):
    """Malformed payload. Terminal, no side effects."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Solicitud inválida"


class NotFound(TutorError):
    """Resource missing or not owned by the principal."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No encontrado"


class UpstreamFailure(TutorError):
    """Model or speech-to-text call failed. Surfaced as a generic 500."""


class PersistenceFailure(TutorError):
    """Conversation store write failed."""


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def tutor_error_handler(request: Request, exc: TutorError) -> JSONResponse:
    """Render a TutorError, hiding the detail of internal failures."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return _error_response(exc.status_code, GENERIC_ERROR_MESSAGE)
    return _error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as 400 instead of FastAPI's 422."""
    errors = exc.errors()
    field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
    message = f"Campo inválido o ausente: {field}" if field else BadRequest.default_message
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Keep HTTPException status codes but use the ``{error}`` body shape."""
    return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the service's exception handlers to an application."""
    app.add_exception_handler(TutorError, tutor_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
