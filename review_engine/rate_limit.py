"""
AI request rate limiting.

Each (user, window) pair owns one counter in a shared store. Admission is a
single atomic increment followed by a comparison against the tier quota, so
concurrent requests can never both take the last slot. Counters expire with
their window; nothing has to clean them up.
"""
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

import redis
from loguru import logger

from review_engine.config import Settings, settings
from review_engine.errors import RateLimited
from review_engine.schemas import RateLimitResult


class CounterStore(ABC):
    """Shared counter store with atomic increment-with-expiry"""

    @abstractmethod
    def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key`` and return the new value; the key expires after ``ttl_seconds``"""


class RedisCounterStore(CounterStore):
    """Counters in Redis: INCR and EXPIRE in one MULTI/EXEC transaction"""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def incr(self, key: str, ttl_seconds: int) -> int:
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(key, 1)
        pipe.expire(key, ttl_seconds)
        count, _ = pipe.execute()
        return int(count)


class MemoryCounterStore(CounterStore):
    """In-process counters for a single worker, tests and local development"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._lock = threading.Lock()
        self._counters: Dict[str, List[float]] = {}  # key -> [count, expires_at]

    def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            now = self.clock()
            self._purge(now)
            entry = self._counters.get(key)
            if entry is None:
                entry = self._counters[key] = [0, now + ttl_seconds]
            entry[0] += 1
            entry[1] = now + ttl_seconds
            return int(entry[0])

    def _purge(self, now: float) -> None:
        for key in [k for k, (_, expires_at) in self._counters.items() if expires_at <= now]:
            del self._counters[key]

    def __len__(self) -> int:
        with self._lock:
            self._purge(self.clock())
            return len(self._counters)


class UsageLimiter:
    """
    Fixed-window AI rate limiter.

    Quotas and window lengths come from ``Settings.ai_rate_limits`` keyed by
    tier. Windows are aligned to multiples of the window length, so every
    request of a user within one window hits the same counter key.
    """

    key_prefix = "ai_rate"

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.time
    ):
        self.config = config or settings
        self.clock = clock
        self.store = store or MemoryCounterStore(clock=clock)

    def _window(self, window_seconds: int, now: float) -> int:
        return int(now // window_seconds) * window_seconds

    def check_ai_rate_limit(self, user_id: int, tier: Optional[str]) -> RateLimitResult:
        """Count this request and report whether it fits the tier's quota"""
        quota = self.config.quota_for(tier)
        now = self.clock()
        window_start = self._window(quota.window_seconds, now)
        key = f"{self.key_prefix}:{user_id}:{window_start}"

        count = self.store.incr(key, quota.window_seconds)
        allowed = count <= quota.requests
        result = RateLimitResult(
            allowed=allowed,
            remaining=max(0, quota.requests - count),
            reset_at=datetime.fromtimestamp(window_start + quota.window_seconds),
            limit=quota.requests
        )
        if not allowed:
            logger.info(
                f"AI rate limit hit for user {user_id} ({tier or self.config.default_tier}): "
                f"{count}/{quota.requests}, resets at {result.reset_at.isoformat()}"
            )
        return result

    def require_ai_capacity(self, user_id: int, tier: Optional[str]) -> RateLimitResult:
        """Like check_ai_rate_limit, but a rejection raises RateLimited"""
        result = self.check_ai_rate_limit(user_id, tier)
        if not result.allowed:
            raise RateLimited(result)
        return result


def get_limiter() -> UsageLimiter:
    """Factory function to return a limiter backed by the configured counter store"""
    if settings.redis_url:
        return UsageLimiter(store=RedisCounterStore.from_url(settings.redis_url))
    logger.warning("REDIS_URL not set, AI rate limits are tracked per process")
    return UsageLimiter()
