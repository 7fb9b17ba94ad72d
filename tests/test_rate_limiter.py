"""
Unit tests for the fixed-window rate limiter and client identification.
"""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from quickfetch.middleware.rate_limiter import (
    RateLimitConfig,
    RateLimitDecision,
    RateLimiter,
    get_client_id,
    rate_limit_headers,
)


class TestFixedWindow:
    """Admission behaviour inside and across windows."""

    @pytest.mark.asyncio
    async def test_first_request_opens_window(self, make_limiter, clock):
        limiter = make_limiter(max_requests=10, window_ms=60000)

        decision = await limiter.check("1.2.3.4")

        assert decision.allowed is True
        assert decision.remaining == 9
        assert decision.limit == 10
        assert decision.reset_at == int((clock.now + 60) * 1000)

    @pytest.mark.asyncio
    async def test_remaining_decreases_monotonically_to_zero(self, make_limiter):
        limiter = make_limiter(max_requests=5)

        decisions = [await limiter.check("client") for _ in range(5)]

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0]

    @pytest.mark.asyncio
    async def test_request_over_limit_is_denied(self, make_limiter):
        limiter = make_limiter(max_requests=3)
        for _ in range(3):
            await limiter.check("client")

        denied = await limiter.check("client")

        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.retry_after == 60

    @pytest.mark.asyncio
    async def test_denials_do_not_consume_quota_or_move_reset(self, make_limiter, clock):
        limiter = make_limiter(max_requests=2)
        first = await limiter.check("client")
        await limiter.check("client")

        clock.advance(10)
        denials = [await limiter.check("client") for _ in range(5)]

        assert all(not d.allowed for d in denials)
        assert {d.reset_at for d in denials} == {first.reset_at}
        assert {d.remaining for d in denials} == {0}
        assert limiter._windows["client"].count == 2

    @pytest.mark.asyncio
    async def test_new_window_after_reset(self, make_limiter, clock):
        limiter = make_limiter(max_requests=2, window_ms=1000)
        for _ in range(4):
            await limiter.check("client")

        clock.advance(1.0)
        decision = await limiter.check("client")

        assert decision.allowed is True
        assert decision.remaining == 1
        assert decision.reset_at == int((clock.now + 1.0) * 1000)

    @pytest.mark.asyncio
    async def test_window_end_is_exclusive(self, make_limiter, clock):
        limiter = make_limiter(max_requests=1, window_ms=1000)
        await limiter.check("client")

        clock.advance(0.5)
        assert (await limiter.check("client")).allowed is False

        clock.advance(0.5)
        assert (await limiter.check("client")).allowed is True

    @pytest.mark.asyncio
    async def test_clients_are_limited_independently(self, make_limiter):
        limiter = make_limiter(max_requests=1)

        assert (await limiter.check("a")).allowed is True
        assert (await limiter.check("a")).allowed is False
        assert (await limiter.check("b")).allowed is True

    @pytest.mark.asyncio
    async def test_boundary_burst_is_possible(self, make_limiter, clock):
        """Fixed windows allow up to twice the limit across a window edge."""
        limiter = make_limiter(max_requests=3, window_ms=1000)

        first_window = [await limiter.check("client") for _ in range(3)]
        clock.advance(1.0)
        second_window = [await limiter.check("client") for _ in range(3)]

        assert all(d.allowed for d in first_window + second_window)

    @pytest.mark.asyncio
    async def test_separate_instances_do_not_share_state(self, make_limiter):
        first = make_limiter(max_requests=1)
        second = make_limiter(max_requests=1)

        await first.check("client")

        assert (await second.check("client")).allowed is True

    def test_concurrent_checks_never_overshoot(self, make_limiter):
        limiter = make_limiter(max_requests=25)
        results = []
        results_lock = threading.Lock()

        def worker():
            decision = limiter._check_memory("shared")
            with results_lock:
                results.append(decision.allowed)

        threads = [threading.Thread(target=worker) for _ in range(100)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 25
        assert limiter._windows["shared"].count == 25

    @pytest.mark.asyncio
    async def test_concurrent_tasks_never_overshoot(self, make_limiter):
        limiter = make_limiter(max_requests=10)

        decisions = await asyncio.gather(*(limiter.check("shared") for _ in range(50)))

        assert sum(d.allowed for d in decisions) == 10


class TestSweep:
    """Eviction of lapsed windows."""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired_windows(self, make_limiter, clock):
        limiter = make_limiter(window_ms=1000)
        await limiter.check("old")
        clock.advance(0.5)
        await limiter.check("fresh")

        clock.advance(0.6)
        evicted = limiter.sweep()

        assert evicted == 1
        assert "old" not in limiter._windows
        assert "fresh" in limiter._windows
        assert limiter.get_metrics()["evicted_windows"] == 1

    @pytest.mark.asyncio
    async def test_background_worker_sweeps_periodically(self, clock):
        limiter = RateLimiter(
            RateLimitConfig(max_requests=1, window_ms=1000, cleanup_interval_ms=10),
            clock=clock,
        )
        await limiter.check("client")
        clock.advance(2)

        await limiter.start()
        try:
            for _ in range(50):
                if not limiter._windows:
                    break
                await asyncio.sleep(0.01)
        finally:
            await limiter.stop()

        assert limiter._windows == {}
        assert limiter._cleanup_task is None

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, make_limiter):
        limiter = make_limiter()

        await limiter.start()
        await limiter.start()
        await limiter.stop()
        await limiter.stop()

        assert limiter._running is False


class TestRedisBackend:
    """Redis-backed admission and fallback to memory."""

    @pytest.mark.asyncio
    async def test_redis_allowed_decision(self, make_limiter, clock):
        limiter = make_limiter(max_requests=10, window_ms=60000)
        limiter.redis_client = AsyncMock()
        limiter.redis_client.eval.return_value = [3, 1700000030000, 1]

        decision = await limiter.check("client")

        assert decision.allowed is True
        assert decision.remaining == 7
        assert decision.reset_at == 1700000030000
        args = limiter.redis_client.eval.await_args.args
        assert args[1:] == (1, "rate_limit:client", 10, 60000, int(clock.now * 1000))

    @pytest.mark.asyncio
    async def test_redis_denied_decision(self, make_limiter):
        limiter = make_limiter(max_requests=10)
        limiter.redis_client = AsyncMock()
        limiter.redis_client.eval.return_value = [10, 1700000012000, 0]

        decision = await limiter.check("client")

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after == 12
        assert limiter.get_metrics()["denied_checks"] == 1

    @pytest.mark.asyncio
    async def test_redis_denials_report_stored_window_end(self, make_limiter, clock):
        """Test that reset_at comes from the stored window end, not the current clock."""
        limiter = make_limiter(max_requests=1)
        limiter.redis_client = AsyncMock()
        limiter.redis_client.eval.return_value = [1, 1700000060000, 0]

        decisions = []
        for step in (0.0013, 7.25, 31.9):
            clock.advance(step)
            decisions.append(await limiter.check("client"))

        assert {d.reset_at for d in decisions} == {1700000060000}
        assert [d.retry_after for d in decisions] == [60, 53, 21]
        sent_now = [call.args[5] for call in limiter.redis_client.eval.await_args_list]
        assert sent_now == sorted(sent_now)

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self, make_limiter):
        limiter = make_limiter(max_requests=2)
        limiter.redis_client = AsyncMock()
        limiter.redis_client.eval.side_effect = RedisConnectionError("down")

        decision = await limiter.check("client")

        assert decision.allowed is True
        assert decision.remaining == 1
        assert limiter.get_metrics()["redis_errors"] == 1
        assert "client" in limiter._windows


class TestConfig:
    """Configuration validation."""

    @pytest.mark.parametrize("kwargs", [
        {"max_requests": 0},
        {"window_ms": 0},
        {"cleanup_interval_ms": -1},
    ])
    def test_invalid_config_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)

    def test_defaults(self):
        config = RateLimitConfig()

        assert config.max_requests == 10
        assert config.window_ms == 60000
        assert config.redis_url is None

    def test_metrics_report_config(self, make_limiter):
        metrics = make_limiter(max_requests=4, window_ms=2000).get_metrics()

        assert metrics["backend"] == "memory"
        assert metrics["config"]["max_requests"] == 4
        assert metrics["config"]["window_ms"] == 2000
        assert metrics["tracked_clients"] == 0


class TestClientIdentification:
    """Client key derivation from request headers."""

    def test_first_forwarded_entry_wins(self):
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.2"}
        assert get_client_id(headers) == "203.0.113.7"

    def test_header_names_are_case_insensitive(self):
        assert get_client_id({"x-forwarded-for": "198.51.100.1"}) == "198.51.100.1"

    def test_real_ip_used_without_forwarded_chain(self):
        assert get_client_id({"X-Real-IP": " 10.0.0.2 "}) == "10.0.0.2"

    def test_empty_forwarded_header_falls_through(self):
        assert get_client_id({"X-Forwarded-For": " , 10.0.0.1", "X-Real-IP": "10.0.0.2"}) == "10.0.0.2"

    def test_unknown_without_headers(self):
        assert get_client_id({}) == "unknown"


class TestRateLimitHeaders:
    """Quota headers attached to responses."""

    def test_allowed_headers(self):
        decision = RateLimitDecision(allowed=True, remaining=4, reset_at=1700000060000, limit=10)

        assert rate_limit_headers(decision) == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": "1700000060000",
        }

    def test_denied_headers_include_retry_after(self):
        decision = RateLimitDecision(
            allowed=False, remaining=0, reset_at=1700000060000, limit=10, retry_after=42
        )

        headers = rate_limit_headers(decision)

        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "42"
