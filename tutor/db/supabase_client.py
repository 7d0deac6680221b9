"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from tutor.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get the shared Supabase client (cached singleton).

    Uses the service role key when configured, otherwise the public anon
    key. The anon client is only suitable for token verification; data
    access under row-level security goes through ``get_user_supabase``.

    Returns:
        Supabase client

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY
        return create_client(settings.SUPABASE_URL, key)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


def get_user_supabase(access_token: str) -> Client:
    """
    Get a Supabase client whose table queries run as the given user.

    With a service role key the shared client is returned, since it
    bypasses row-level security anyway.

    Args:
        access_token: The user's Supabase access token (JWT)

    Returns:
        Supabase client scoped to the user's session
    """
    settings = get_settings()
    if settings.SUPABASE_SERVICE_ROLE_KEY:
        return get_supabase()

    try:
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        client.postgrest.auth(access_token)
        return client
    except Exception as e:
        raise RuntimeError(f"Failed to initialize user Supabase client: {e}") from e


def release_user_supabase(client: Client) -> None:
    """
    Close the HTTP session of a client built by ``get_user_supabase``.

    The shared service-role client is left open.
    """
    if get_settings().SUPABASE_SERVICE_ROLE_KEY:
        return
    client.postgrest.session.close()
