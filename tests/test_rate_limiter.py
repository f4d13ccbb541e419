"""
Tests for the in-memory rate limiter and client IP resolution.

Run with: pytest tests/test_rate_limiter.py -v
"""

import pytest
from starlette.requests import Request

from app.core import rate_limiter as rate_limiter_module
from app.core.config import get_settings
from app.core.rate_limiter import RateLimitConfig, RateLimiter, get_client_ip


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(rate_limiter_module.time, "monotonic", fake)
    return fake


def _request(headers=None, client=("10.0.0.1", 5000)) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "headers": raw_headers, "client": client})


class TestRateLimiter:

    def test_blocks_after_limit_with_retry_after(self, clock):
        limiter = RateLimiter({"login": RateLimitConfig(max_requests=2, window_seconds=60)})

        assert limiter.hit("login", "a") == (True, 0)
        assert limiter.hit("login", "a") == (True, 0)

        allowed, retry_after = limiter.hit("login", "a")
        assert allowed is False
        assert retry_after == 61

        clock.now += 61
        assert limiter.hit("login", "a") == (True, 0)

    def test_idle_keys_are_pruned_on_hit(self, clock):
        limiter = RateLimiter(
            {"login": RateLimitConfig(max_requests=5, window_seconds=60)},
            cleanup_interval_seconds=30,
        )
        for n in range(200):
            limiter.hit("login", f"198.51.100.{n}")
        assert len(limiter) == 200

        clock.now += 61
        limiter.hit("login", "fresh")

        assert len(limiter) == 1

    def test_cleanup_keeps_keys_inside_window(self, clock):
        limiter = RateLimiter({"login": RateLimitConfig(max_requests=5, window_seconds=60)})
        limiter.hit("login", "old")
        clock.now += 45
        limiter.hit("login", "recent")
        clock.now += 20

        assert limiter.cleanup_all() == 1
        assert len(limiter) == 1

    def test_unknown_limit_type_is_allowed(self):
        limiter = RateLimiter({})

        assert limiter.hit("nope", "a") == (True, 0)
        assert len(limiter) == 0


class TestClientIp:

    def test_forwarded_headers_ignored_by_default(self):
        request = _request({"X-Forwarded-For": "203.0.113.9", "X-Real-IP": "203.0.113.10"})

        assert get_client_ip(request) == "10.0.0.1"

    def test_forwarded_headers_used_behind_trusted_proxy(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "trust_proxy_headers", True)

        request = _request({"X-Forwarded-For": "203.0.113.9, 10.0.0.2"})

        assert get_client_ip(request) == "203.0.113.9"

    def test_unknown_without_client(self):
        assert get_client_ip(_request(client=None)) == "unknown"
