"""
Rate limiting for QuickFetch API.

This module provides a fixed-window request counter keyed by client identity.
The window table lives in process memory by default; when a Redis URL is
configured the same algorithm runs atomically inside Redis so that several
worker processes share one quota.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError


logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

# KEYS[1] = window hash, ARGV[1] = max requests, ARGV[2] = window in ms,
# ARGV[3] = now in epoch ms. Returns {count, window_end_ms, allowed}.
# The window end is stored once per window so every decision in it reports the
# same reset time. Denied requests leave the counter untouched.
FIXED_WINDOW_SCRIPT = """
local now = tonumber(ARGV[3])
local count = tonumber(redis.call('HGET', KEYS[1], 'count') or '0')
local window_end = tonumber(redis.call('HGET', KEYS[1], 'window_end') or '0')
if count == 0 or now >= window_end then
    window_end = now + tonumber(ARGV[2])
    redis.call('HSET', KEYS[1], 'count', 1, 'window_end', window_end)
    redis.call('PEXPIREAT', KEYS[1], window_end)
    return {1, window_end, 1}
end
if count >= tonumber(ARGV[1]) then
    return {count, window_end, 0}
end
count = redis.call('HINCRBY', KEYS[1], 'count', 1)
return {count, window_end, 1}
"""


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""
    max_requests: int = 10
    window_ms: int = 60000
    cleanup_interval_ms: int = 60000
    redis_url: Optional[str] = None

    def __post_init__(self):
        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if self.cleanup_interval_ms <= 0:
            raise ValueError("cleanup_interval_ms must be positive")


@dataclass
class RateLimitWindow:
    """Per-client counter for the current window."""
    count: int
    window_end: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check."""
    allowed: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    limit: int
    retry_after: int = 0  # seconds, only meaningful when denied


class RateLimiter:
    """
    Fixed-window rate limiter.

    Each client gets ``max_requests`` admissions per window. The window starts
    with the client's first request and is replaced wholesale once it lapses.
    Requests denied inside a window are not counted. A client can therefore
    burst up to twice the limit across a window edge.

    Features:
    - Atomic check-and-increment per client (lock or Redis Lua script)
    - Periodic sweep of lapsed windows
    - Redis backend with in-memory fallback
    - Admission metrics
    """

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock
        self.redis_client: Optional[redis.Redis] = None

        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._running = False

        self.metrics = {
            'total_checks': 0,
            'denied_checks': 0,
            'evicted_windows': 0,
            'redis_errors': 0,
        }

        logger.info(f"Rate limiter initialized with config: {config}")

    @property
    def window_seconds(self) -> float:
        return self.config.window_ms / 1000.0

    async def start(self):
        """Connect the optional Redis backend and start the sweep task."""
        if self._running:
            return

        self._running = True

        if self.config.redis_url and self.redis_client is None:
            try:
                self.redis_client = redis.from_url(self.config.redis_url, decode_responses=True)
                await self.redis_client.ping()
                logger.info("Rate limiter connected to Redis")
            except (RedisError, OSError) as e:
                logger.error(f"Failed to connect to Redis for rate limiting: {e}")
                self.redis_client = None
        elif not self.config.redis_url:
            logger.info("Redis not configured, using in-memory rate limiting")

        self._cleanup_task = asyncio.create_task(self._cleanup_worker())

    async def stop(self):
        """Stop the sweep task and release the Redis connection."""
        if not self._running:
            return

        self._running = False

        if self._cleanup_task:
            self._cleanup_task.cancel()
            await asyncio.gather(self._cleanup_task, return_exceptions=True)
            self._cleanup_task = None

        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None

    async def check(self, client_id: str) -> RateLimitDecision:
        """
        Admit or deny one request for a client.

        Args:
            client_id: Client identifier

        Returns:
            RateLimitDecision with the remaining quota and reset time
        """
        if self.redis_client is not None:
            try:
                decision = await self._check_redis(client_id)
                self._record(decision)
                return decision
            except RedisError as e:
                logger.error(f"Rate limit check error: {e}")
                self.metrics['redis_errors'] += 1
                # Fall back to memory-based rate limiting

        decision = self._check_memory(client_id)
        self._record(decision)
        return decision

    def _check_memory(self, client_id: str) -> RateLimitDecision:
        max_requests = self.config.max_requests

        with self._lock:
            now = self.clock()
            window = self._windows.get(client_id)

            if window is None or now >= window.window_end:
                window = RateLimitWindow(count=1, window_end=now + self.window_seconds)
                self._windows[client_id] = window
                return self._decision(True, max_requests - 1, self._to_ms(window.window_end), now)

            if window.count >= max_requests:
                return self._decision(False, 0, self._to_ms(window.window_end), now)

            window.count += 1
            return self._decision(True, max_requests - window.count, self._to_ms(window.window_end), now)

    async def _check_redis(self, client_id: str) -> RateLimitDecision:
        key = f"rate_limit:{client_id}"
        now = self.clock()
        count, window_end_ms, allowed = await self.redis_client.eval(
            FIXED_WINDOW_SCRIPT, 1, key,
            self.config.max_requests, self.config.window_ms, self._to_ms(now)
        )

        reset_at = int(window_end_ms)
        if int(allowed):
            return self._decision(True, max(0, self.config.max_requests - int(count)), reset_at, now)
        return self._decision(False, 0, reset_at, now)

    @staticmethod
    def _to_ms(timestamp: float) -> int:
        return int(timestamp * 1000)

    def _decision(self, allowed: bool, remaining: int, reset_at: int, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            remaining=remaining,
            reset_at=reset_at,
            limit=self.config.max_requests,
            retry_after=0 if allowed else max(0, math.ceil(reset_at / 1000.0 - now)),
        )

    def _record(self, decision: RateLimitDecision):
        self.metrics['total_checks'] += 1
        if not decision.allowed:
            self.metrics['denied_checks'] += 1

    def sweep(self) -> int:
        """
        Remove windows that have lapsed.

        Returns:
            Number of evicted client records
        """
        with self._lock:
            now = self.clock()
            expired = [key for key, window in self._windows.items() if now >= window.window_end]
            for key in expired:
                del self._windows[key]
            self.metrics['evicted_windows'] += len(expired)

        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate limit windows")
        return len(expired)

    async def _cleanup_worker(self):
        """Background worker evicting lapsed windows."""
        interval = self.config.cleanup_interval_ms / 1000.0
        while self._running:
            await asyncio.sleep(interval)
            self.sweep()

    def get_metrics(self) -> Dict[str, Any]:
        """Get current rate limiter metrics."""
        with self._lock:
            tracked_clients = len(self._windows)

        return {
            **self.metrics,
            'tracked_clients': tracked_clients,
            'backend': 'redis' if self.redis_client is not None else 'memory',
            'config': {
                'max_requests': self.config.max_requests,
                'window_ms': self.config.window_ms,
                'cleanup_interval_ms': self.config.cleanup_interval_ms,
            }
        }


def get_client_id(headers: Mapping[str, str]) -> str:
    """
    Get client identifier for rate limiting.

    Proxy headers are trusted as given, so this is abuse mitigation rather
    than access control.

    Args:
        headers: Request headers (any case)

    Returns:
        str: First X-Forwarded-For entry, else X-Real-IP, else "unknown"
    """
    lowered = {key.lower(): value for key, value in headers.items()}

    # Check for forwarded IP (behind proxy/CDN)
    forwarded_for = lowered.get('x-forwarded-for', '')
    first_hop = forwarded_for.split(',')[0].strip()
    if first_hop:
        return first_hop

    # Check for real IP (behind proxy)
    real_ip = lowered.get('x-real-ip', '').strip()
    if real_ip:
        return real_ip

    return UNKNOWN_CLIENT


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    """Response headers describing the client's quota."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after)
    return headers
