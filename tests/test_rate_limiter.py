"""Tests for the per-user token bucket."""

from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi import HTTPException

from tutor.core.rate_limiter import (
    RateLimiter,
    check_chat_rate_limit,
    check_transcribe_rate_limit,
    get_chat_rate_limiter,
)


class TestRateLimiter:
    def test_allows_up_to_burst(self):
        limiter = RateLimiter(requests_per_minute=60, burst_size=3)
        for _ in range(3):
            assert limiter.check_limit("chat:a")

        with pytest.raises(HTTPException) as exc_info:
            limiter.check_limit("chat:a")

        assert exc_info.value.status_code == 429
        assert int(exc_info.value.headers["Retry-After"]) >= 1

    def test_keys_are_independent(self):
        limiter = RateLimiter(requests_per_minute=60, burst_size=1)
        limiter.check_limit("chat:a")
        assert limiter.check_limit("chat:b")

    def test_refills_over_time(self):
        limiter = RateLimiter(requests_per_minute=60, burst_size=1)
        with patch("tutor.core.rate_limiter.time.time", return_value=1000.0):
            limiter.check_limit("chat:a")
        with patch("tutor.core.rate_limiter.time.time", return_value=1002.0):
            assert limiter.check_limit("chat:a")

    def test_refilled_buckets_are_dropped(self):
        with patch("tutor.core.rate_limiter.time.time", return_value=1000.0):
            limiter = RateLimiter(requests_per_minute=1, burst_size=2)
            limiter.check_limit("chat:a")
        with patch("tutor.core.rate_limiter.time.time", return_value=1050.0):
            limiter.check_limit("chat:c")
            limiter.check_limit("chat:c")
        with patch("tutor.core.rate_limiter.time.time", return_value=1061.0):
            limiter.check_limit("chat:b")

        assert "chat:a" not in limiter._buckets
        assert "chat:c" in limiter._buckets
        assert "chat:b" in limiter._buckets

    def test_dropped_bucket_starts_full(self):
        with patch("tutor.core.rate_limiter.time.time", return_value=1000.0):
            limiter = RateLimiter(requests_per_minute=60, burst_size=2)
            limiter.check_limit("chat:a")
            limiter.check_limit("chat:a")
        with patch("tutor.core.rate_limiter.time.time", return_value=1100.0):
            limiter.check_limit("chat:b")
            assert "chat:a" not in limiter._buckets
            assert limiter.check_limit("chat:a")
            assert limiter.check_limit("chat:a")


class TestUserLimits:
    def test_chat_and_transcribe_use_separate_buckets(self):
        user_id = uuid4()
        limiter = get_chat_rate_limiter()
        for _ in range(limiter.burst_size):
            check_chat_rate_limit(user_id)

        with pytest.raises(HTTPException):
            check_chat_rate_limit(user_id)
        check_transcribe_rate_limit(user_id)

    def test_sized_from_settings(self):
        limiter = get_chat_rate_limiter()
        assert limiter.requests_per_minute == 10
        assert limiter.burst_size == 15
