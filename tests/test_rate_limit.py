"""
Tests for the AI rate limiter and its counter stores.
"""
import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from review_engine.config import Settings, TierQuota
from review_engine.errors import RateLimited
from review_engine.rate_limit import CounterStore, MemoryCounterStore, RedisCounterStore, UsageLimiter

START = 1_000_020.0  # aligned to a 60 second window


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def config():
    return Settings(ai_rate_limits={
        "FREE": TierQuota(requests=3, window_seconds=60),
        "PRO": TierQuota(requests=10, window_seconds=60),
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(config, clock):
    return UsageLimiter(config=config, clock=clock)


class TestUsageLimiter:
    def test_quota_then_rejection(self, limiter):
        results = [limiter.check_ai_rate_limit(1, "FREE") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert all(r.limit == 3 for r in results)
        assert results[0].reset_at == datetime.fromtimestamp(START + 60)

    def test_next_window_admits_again(self, limiter, clock):
        for _ in range(4):
            limiter.check_ai_rate_limit(1, "FREE")

        clock.now += 60

        result = limiter.check_ai_rate_limit(1, "FREE")
        assert result.allowed is True
        assert result.remaining == 2

    def test_users_counted_separately(self, limiter):
        for _ in range(3):
            limiter.check_ai_rate_limit(1, "FREE")
        assert limiter.check_ai_rate_limit(2, "FREE").allowed is True

    def test_tier_quota(self, limiter):
        results = [limiter.check_ai_rate_limit(1, "PRO") for _ in range(11)]
        assert sum(r.allowed for r in results) == 10

    def test_unknown_tier_uses_default(self, limiter):
        assert limiter.check_ai_rate_limit(1, "ENTERPRISE").limit == 3
        assert limiter.check_ai_rate_limit(1, None).limit == 3

    def test_require_raises_when_rejected(self, limiter):
        for _ in range(3):
            limiter.require_ai_capacity(1, "FREE")

        with pytest.raises(RateLimited) as exc_info:
            limiter.require_ai_capacity(1, "FREE")

        assert exc_info.value.code == "RATE_LIMITED"
        assert exc_info.value.result.allowed is False

    def test_concurrent_requests_admit_exactly_quota(self, config, clock):
        limiter = UsageLimiter(config=config, clock=clock)
        workers = 20
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            result = limiter.check_ai_rate_limit(7, "FREE")
            with lock:
                results.append(result.allowed)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 3
        assert results.count(False) == workers - 3


class TestMemoryCounterStore:
    def test_counts_and_expires(self, clock):
        store = MemoryCounterStore(clock=clock)

        assert store.incr("k", 60) == 1
        assert store.incr("k", 60) == 2
        assert len(store) == 1

        clock.now += 61
        assert len(store) == 0
        assert store.incr("k", 60) == 1


class TestRedisCounterStore:
    def test_incr_and_expire_in_one_transaction(self):
        client = MagicMock()
        pipe = client.pipeline.return_value
        pipe.execute.return_value = [4, True]

        store = RedisCounterStore(client)

        assert store.incr("ai_rate:1:1000020", 60) == 4
        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("ai_rate:1:1000020", 1)
        pipe.expire.assert_called_once_with("ai_rate:1:1000020", 60)

    def test_limiter_uses_window_key(self, config, clock):
        client = MagicMock()
        client.pipeline.return_value.execute.return_value = [1, True]
        limiter = UsageLimiter(store=RedisCounterStore(client), config=config, clock=clock)

        result = limiter.check_ai_rate_limit(42, "FREE")

        assert result.allowed is True
        client.pipeline.return_value.incr.assert_called_once_with("ai_rate:42:1000020", 1)

    def test_counter_store_is_abstract(self):
        with pytest.raises(TypeError):
            CounterStore()
