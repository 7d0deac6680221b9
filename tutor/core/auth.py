"""Identity provider adapter: resolve the current principal from Supabase Auth.

The browser holds a Supabase session in cookies set by the frontend's
SSR helper (``sb-<project-ref>-auth-token``, optionally ``base64-``
encoded and split into ``.0``, ``.1``, ... chunks). API clients may send
the access token as a Bearer header instead.
"""

import asyncio
import base64
import binascii
import json
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import urlparse
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from tutor.core.config import get_settings
from tutor.core.errors import Unauthorized
from tutor.core.logging import get_logger
from tutor.core.schemas_chat import Principal

logger = get_logger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)

BASE64_PREFIX = "base64-"
MAX_COOKIE_CHUNKS = 16


def session_cookie_name(supabase_url: str) -> str:
    """Cookie name used by Supabase SSR for a project URL."""
    host = urlparse(supabase_url).hostname or ""
    project_ref = host.split(".")[0]
    return f"sb-{project_ref}-auth-token"


def _read_cookie_value(cookies: dict[str, str], name: str) -> Optional[str]:
    """Return the cookie value, joining chunked cookies when needed."""
    if name in cookies:
        return cookies[name]

    chunks = []
    for i in range(MAX_COOKIE_CHUNKS):
        chunk = cookies.get(f"{name}.{i}")
        if chunk is None:
            break
        chunks.append(chunk)
    return "".join(chunks) or None


def access_token_from_cookie(raw: str) -> Optional[str]:
    """Extract the access token from a Supabase session cookie value."""
    value = raw
    if value.startswith(BASE64_PREFIX):
        encoded = value[len(BASE64_PREFIX):]
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

    try:
        session: Any = json.loads(value)
    except json.JSONDecodeError:
        return None

    # Older helpers stored [access_token, refresh_token, ...]
    if isinstance(session, list):
        return session[0] if session and isinstance(session[0], str) else None
    if isinstance(session, dict):
        token = session.get("access_token")
        return token if isinstance(token, str) else None
    return None


class IdentityProvider:
    """Resolves request-scoped session credentials into a Principal."""

    def __init__(self, client: Client, cookie_name: str):
        self.client = client
        self.cookie_name = cookie_name

    def token_from_request(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = None,
    ) -> Optional[str]:
        """Bearer header first, then the session cookie."""
        if credentials and credentials.credentials:
            return credentials.credentials

        raw = _read_cookie_value(dict(request.cookies), self.cookie_name)
        if not raw:
            return None
        return access_token_from_cookie(raw)

    async def resolve(self, token: str) -> Optional[Principal]:
        """
        Validate a token with Supabase Auth and build the principal.

        Returns None for any invalid, expired or unverifiable token.
        """
        try:
            auth_response = await asyncio.to_thread(self.client.auth.get_user, token)
        except Exception as e:
            logger.warning(f"Auth error: {e}")
            return None

        if not auth_response or not auth_response.user:
            return None

        user = auth_response.user
        metadata = user.user_metadata or {}
        return Principal(
            id=UUID(str(user.id)),
            email=user.email,
            display_name=metadata.get("full_name") or metadata.get("name"),
            access_token=token,
        )


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    """Shared identity provider built from settings."""
    from tutor.db.supabase_client import get_supabase

    settings = get_settings()
    return IdentityProvider(get_supabase(), session_cookie_name(settings.SUPABASE_URL))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[Principal]:
    """
    Extract and validate the current user from the request.

    Returns None if no valid session is present (for optional auth endpoints).
    """
    token = identity.token_from_request(request, credentials)
    if not token:
        return None
    return await identity.resolve(token)


async def require_auth(
    principal: Optional[Principal] = Depends(get_current_user),
) -> Principal:
    """Require authentication. Raises Unauthorized (401) if not authenticated."""
    if not principal:
        raise Unauthorized()
    return principal
