"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from tutor.api import router as api_router
from tutor.core.errors import register_exception_handlers

app = FastAPI(
    title="Legal Tutor API",
    description="Legal tutoring chat service with document-grounded answers",
    version="0.1.0",
)

register_exception_handlers(app)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


app.include_router(api_router)
