"""
Simple In-Memory Rate Limiter for the OTP endpoints.

Sliding window per key. Login code requests are limited per client IP and per
identifier (email / mobile number); code verification per client IP and per
user id, which bounds guessing against a 6-digit code inside one OTP window.
For production with multiple instances, consider Redis-based rate limiting.
"""

import time
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple
from dataclasses import dataclass
from threading import Lock

from fastapi import Request

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    # Login code requests: 10 per 15 minutes per IP
    "otp_request_ip": RateLimitConfig(max_requests=10, window_seconds=900),
    # Login code requests: 5 per 15 minutes per email / mobile number
    "otp_request_identifier": RateLimitConfig(max_requests=5, window_seconds=900),
    # Code verification: 20 attempts per 15 minutes per IP
    "otp_verify_ip": RateLimitConfig(max_requests=20, window_seconds=900),
    # Code verification: 5 attempts per 5 minutes per user
    "otp_verify_user": RateLimitConfig(max_requests=5, window_seconds=300),
}


class RateLimiter:
    """Thread-safe sliding-window limiter keyed by ``<limit_type>:<identifier>``."""

    def __init__(
        self,
        configs: Dict[str, RateLimitConfig] = None,
        cleanup_interval_seconds: int = 60,
    ):
        self.configs = dict(configs or DEFAULT_LIMITS)
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self._last_cleanup = time.monotonic()

    @staticmethod
    def _evict(hits: Deque[float], cutoff: float) -> None:
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, limit_type: str, identifier: str) -> Tuple[bool, int]:
        """
        Count one request against the limit.

        Keys whose window has elapsed are pruned at most once per
        ``cleanup_interval_seconds``.

        Returns:
            (allowed, retry_after_seconds). A rejected request is not counted.
        """
        config = self.configs.get(limit_type)
        if config is None:
            logger.warning(f"Unknown rate limit type: {limit_type}")
            return True, 0

        key = f"{limit_type}:{identifier}"
        now = time.monotonic()

        if now - self._last_cleanup >= self.cleanup_interval_seconds:
            self.cleanup_all()

        with self._lock:
            hits = self._hits[key]
            self._evict(hits, now - config.window_seconds)

            if len(hits) >= config.max_requests:
                retry_after = int(hits[0] + config.window_seconds - now) + 1
                return False, max(retry_after, 1)

            hits.append(now)
            return True, 0

    def reset(self, limit_type: str, identifier: str) -> None:
        """Forget a key (e.g. the per-user verify counter after a successful login)."""
        with self._lock:
            self._hits.pop(f"{limit_type}:{identifier}", None)

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()

    def cleanup_all(self) -> int:
        """Drop keys whose window has fully elapsed. Returns the number removed."""
        now = time.monotonic()
        with self._lock:
            self._last_cleanup = now
            stale = []
            for key, hits in self._hits.items():
                config = self.configs.get(key.split(":", 1)[0])
                if config is not None:
                    self._evict(hits, now - config.window_seconds)
                if not hits:
                    stale.append(key)
            for key in stale:
                del self._hits[key]
        if stale:
            logger.debug(f"Rate limiter pruned {len(stale)} idle key(s)")
        return len(stale)


# Global rate limiter instance
rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request.

    ``X-Forwarded-For`` / ``X-Real-IP`` are client-controlled, so they are
    only read when TRUST_PROXY_HEADERS is set (app behind a reverse proxy).
    """
    if get_settings().trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"
