"""LLM client utilities for LangChain integration."""

from collections.abc import AsyncIterator
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from tutor.core.config import get_settings


def get_llm(model: str | None = None, temperature: float | None = None) -> ChatOpenAI:
    """
    Get configured chat model instance.

    Args:
        model: Model name override (defaults to config setting)
        temperature: Temperature override (defaults to config setting, 0.4)

    Returns:
        ChatOpenAI instance configured with API key and model
    """
    settings = get_settings()

    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=model or settings.CHAT_MODEL,
        temperature=settings.CHAT_TEMPERATURE if temperature is None else temperature,
        timeout=settings.CHAT_TIMEOUT_SECONDS,
    )


def content_text(content: Any) -> str:
    """Flatten a LangChain message content (str or content parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return ""


class CompletionClient:
    """Thin async wrapper over a LangChain chat model."""

    def __init__(self, model: BaseChatModel):
        self.model = model

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Return the full reply in one piece."""
        result = await self.model.ainvoke(messages)
        return content_text(result.content)

    async def stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        """Yield non-empty text fragments as the model produces them."""
        async for chunk in self.model.astream(messages):
            text = content_text(chunk.content)
            if text:
                yield text
