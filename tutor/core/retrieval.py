"""Context retrieval from Vertex AI Search (Discovery Engine).

Retrieval is best-effort: ``search`` never raises. Any failure (missing
configuration, credentials, network, HTTP status, malformed payload, no
results) collapses to the empty string and the turn continues without
context.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from tutor.core.config import Settings
from tutor.core.logging import get_logger
from tutor.core.retrieval_format import format_snippets

logger = get_logger(__name__)

SEARCH_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
DISCOVERY_ENGINE_URL = "https://discoveryengine.googleapis.com/v1alpha"
UNTITLED = "Sin título"


@dataclass
class SearchSnippet:
    """One search hit reduced to what the prompt needs."""

    id: str
    title: str
    snippet: str
    link: Optional[str] = None


class ContextRetriever(ABC):
    """Interface for retrieving grounding context for a user message."""

    @abstractmethod
    async def search(self, query: str) -> str:
        """Return formatted context for ``query``, or "" when there is none."""


class NullRetriever(ContextRetriever):
    """Used when no search service is configured."""

    async def search(self, query: str) -> str:
        return ""


def parse_search_results(data: dict[str, Any], max_results: int = 3) -> list[SearchSnippet]:
    """
    Reduce a Discovery Engine search response to snippet-bearing entries.

    Args:
        data: Decoded JSON response
        max_results: Max entries to keep

    Returns:
        Snippets in relevance order; documents without any snippet are skipped
    """
    results = data.get("results")
    if not isinstance(results, list):
        return []

    snippets: list[SearchSnippet] = []
    for result in results:
        doc = result.get("document") if isinstance(result, dict) else None
        if not doc:
            continue

        struct_data = doc.get("structData") or {}
        derived = doc.get("derivedStructData") or {}

        title = struct_data.get("title") or derived.get("title") or UNTITLED
        snippet = struct_data.get("snippet") or ""
        if not snippet:
            for key, field in (("snippets", "snippet"), ("extractiveSegments", "content")):
                items = derived.get(key) or []
                if items and items[0].get(field):
                    snippet = items[0][field]
                    break
        if not snippet:
            continue

        snippets.append(
            SearchSnippet(
                id=str(result.get("id") or doc.get("id") or ""),
                title=title,
                snippet=snippet,
                link=struct_data.get("link") or derived.get("link"),
            )
        )
        if len(snippets) >= max_results:
            break

    return snippets


class VertexSearchClient(ContextRetriever):
    """Queries a Vertex AI Search serving config with a service account."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[Any] = None,
    ):
        self.settings = settings
        self._http_client = http_client
        self._credentials = credentials

    @property
    def endpoint(self) -> str:
        s = self.settings
        return (
            f"{DISCOVERY_ENGINE_URL}/projects/{s.VERTEX_PROJECT_ID}"
            f"/locations/{s.VERTEX_LOCATION}/collections/{s.VERTEX_COLLECTION}"
            f"/dataStores/{s.VERTEX_ENGINE_ID}/servingConfigs/{s.VERTEX_SERVING_CONFIG}:search"
        )

    def build_request_body(self, query: str) -> dict[str, Any]:
        """Top-K relevance query asking for snippets and extractive segments."""
        return {
            "query": query,
            "pageSize": self.settings.SEARCH_PAGE_SIZE,
            "contentSearchSpec": {
                "snippetSpec": {"maxSnippetCount": 3, "returnSnippet": True},
                "extractiveContentSpec": {
                    "maxExtractiveSegmentCount": 3,
                    "maxExtractiveAnswerCount": 1,
                },
            },
            "queryExpansionSpec": {"condition": "AUTO"},
            "spellCorrectionSpec": {"mode": "AUTO"},
        }

    def _load_credentials(self) -> Any:
        """Inline JSON credentials take precedence over a key file."""
        s = self.settings
        if s.GOOGLE_APPLICATION_CREDENTIALS_JSON:
            info = json.loads(s.GOOGLE_APPLICATION_CREDENTIALS_JSON)
            return service_account.Credentials.from_service_account_info(info, scopes=SEARCH_SCOPES)
        if s.GOOGLE_APPLICATION_CREDENTIALS:
            return service_account.Credentials.from_service_account_file(
                s.GOOGLE_APPLICATION_CREDENTIALS, scopes=SEARCH_SCOPES
            )
        raise ValueError("No Google service account credentials configured")

    async def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials = self._load_credentials()

        if not self._credentials.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())

        token = self._credentials.token
        if not token:
            raise ValueError("Could not obtain a Google access token")
        return token

    async def fetch(self, query: str) -> list[SearchSnippet]:
        """
        Run the search and parse the results.

        Raises:
            ValueError: If credentials are missing or invalid
            httpx.HTTPError: On network failure or non-2xx status
        """
        token = await self._access_token()
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        body = self.build_request_body(query)

        if self._http_client is not None:
            response = await self._http_client.post(self.endpoint, headers=headers, json=body)
        else:
            async with httpx.AsyncClient(timeout=self.settings.SEARCH_TIMEOUT_SECONDS) as client:
                response = await client.post(self.endpoint, headers=headers, json=body)
        response.raise_for_status()

        return parse_search_results(response.json(), max_results=self.settings.SEARCH_MAX_RESULTS)

    async def search(self, query: str) -> str:
        try:
            snippets = await self.fetch(query)
        except Exception as e:
            logger.warning(f"Context search failed (non-fatal): {type(e).__name__}: {e}")
            return ""

        if not snippets:
            logger.info("Context search returned no relevant documents")
            return ""

        logger.info(f"Context search found {len(snippets)} documents")
        return format_snippets(snippets)


def get_retriever(settings: Settings) -> ContextRetriever:
    """Vertex client when search is fully configured, otherwise a null retriever."""
    if not settings.search_configured:
        logger.warning("Vertex AI Search not configured; context retrieval disabled")
        return NullRetriever()
    return VertexSearchClient(settings)
