"""Per-user token buckets for the chat and transcription endpoints."""

import time
from functools import lru_cache
from typing import Dict, Tuple
from uuid import UUID

from fastapi import HTTPException

from tutor.core.config import get_settings
from tutor.core.logging import get_logger

logger = get_logger(__name__)

# Seconds between sweeps of idle buckets
PRUNE_INTERVAL = 60.0


class RateLimiter:
    """
    Token bucket limiter keyed by ``<endpoint>:<user id>``.

    Buckets live in process memory. A bucket that has refilled to
    ``burst_size`` is indistinguishable from a new one, so the periodic
    sweep drops it.
    """

    def __init__(self, requests_per_minute: int = 10, burst_size: int = 15):
        self.requests_per_minute = requests_per_minute
        self.burst_size = burst_size
        self.refill_rate = requests_per_minute / 60.0  # tokens per second

        # key -> (tokens, last_seen)
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._last_prune = time.time()

    def _tokens(self, key: str, now: float) -> float:
        tokens, last_seen = self._buckets.get(key, (self.burst_size, now))
        return min(self.burst_size, tokens + (now - last_seen) * self.refill_rate)

    def _prune(self, now: float) -> None:
        if now - self._last_prune < PRUNE_INTERVAL:
            return
        self._last_prune = now
        full = [key for key in self._buckets if self._tokens(key, now) >= self.burst_size]
        for key in full:
            del self._buckets[key]
        if full:
            logger.debug(f"Dropped {len(full)} idle rate limit buckets")

    def check_limit(self, key: str, cost: float = 1.0) -> bool:
        """
        Take ``cost`` tokens from the bucket for ``key``.

        Returns:
            True if allowed

        Raises:
            HTTPException: 429 with ``Retry-After`` when the bucket is empty
        """
        now = time.time()
        self._prune(now)

        tokens = self._tokens(key, now)
        if tokens >= cost:
            self._buckets[key] = (tokens - cost, now)
            return True

        self._buckets[key] = (tokens, now)
        retry_after = int((cost - tokens) / self.refill_rate) + 1

        logger.warning(
            f"Rate limit exceeded for key: {key}, "
            f"tokens: {tokens:.2f}/{self.burst_size}, "
            f"retry after: {retry_after}s"
        )

        raise HTTPException(
            status_code=429,
            detail=f"Demasiadas solicitudes. Inténtalo de nuevo en {retry_after} segundos.",
            headers={"Retry-After": str(retry_after)},
        )


@lru_cache(maxsize=1)
def get_chat_rate_limiter() -> RateLimiter:
    """Process-wide limiter sized from settings."""
    settings = get_settings()
    return RateLimiter(
        requests_per_minute=settings.CHAT_REQUESTS_PER_MINUTE,
        burst_size=settings.CHAT_BURST_SIZE,
    )


def check_chat_rate_limit(user_id: UUID) -> None:
    """Raises HTTPException 429 once the caller's chat bucket is empty."""
    get_chat_rate_limiter().check_limit(f"chat:{user_id}")


def check_transcribe_rate_limit(user_id: UUID) -> None:
    get_chat_rate_limiter().check_limit(f"transcribe:{user_id}")
