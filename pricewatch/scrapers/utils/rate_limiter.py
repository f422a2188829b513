"""Token bucket rate limiter for per-host politeness."""

import asyncio
import time
from typing import Dict, Optional


class TokenBucket:
    """Token bucket holding up to ``capacity`` request permits.

    Permits accrue at ``rate`` per second. Callers are served in arrival
    order: the lock is held while a caller sleeps for its permit.
    """

    def __init__(self, rate: float, capacity: float):
        """Initialize token bucket.

        Args:
            rate: Permits per second (0.5 means one request every 2 seconds)
            capacity: Burst size, the bucket starts full
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.rate)
        self.last_refill = now

    def _shortfall_seconds(self, tokens: float) -> float:
        """Seconds until ``tokens`` permits are available, 0 when they already are."""
        self._refill()
        missing = tokens - self.tokens
        return missing / self.rate if missing > 0 else 0.0

    async def acquire(self, tokens: float = 1.0) -> None:
        """Take ``tokens`` permits, sleeping until the bucket holds enough."""
        async with self._lock:
            wait = self._shortfall_seconds(tokens)
            while wait > 0:
                await asyncio.sleep(wait)
                wait = self._shortfall_seconds(tokens)
            self.tokens -= tokens


class DomainRateLimiter:
    """Per-host minimum delay between consecutive requests.

    Each host gets a bucket holding a single token that refills once per
    ``min_delay`` seconds, so the first request to a host goes out at once
    and later ones are spaced at least ``min_delay`` apart. Different hosts
    never wait on each other.
    """

    def __init__(self, min_delay: float = 0.0, overrides: Optional[Dict[str, float]] = None):
        """Initialize rate limiter.

        Args:
            min_delay: Default seconds between requests to the same host (0 disables)
            overrides: Per-host delays replacing the default
        """
        self.min_delay = min_delay
        self._overrides: Dict[str, float] = dict(overrides or {})
        self._buckets: Dict[str, TokenBucket] = {}

    def get_delay(self, domain: str) -> float:
        return self._overrides.get(domain, self.min_delay)

    def _get_bucket(self, domain: str) -> Optional[TokenBucket]:
        """Get or create the token bucket for a host, None when unlimited."""
        delay = self.get_delay(domain)
        if delay <= 0:
            return None
        if domain not in self._buckets:
            self._buckets[domain] = TokenBucket(rate=1.0 / delay, capacity=1.0)
        return self._buckets[domain]

    async def acquire(self, domain: str) -> None:
        """Wait until a request to ``domain`` is allowed.

        Args:
            domain: Host name to rate limit
        """
        bucket = self._get_bucket(domain)
        if bucket is not None:
            await bucket.acquire()

    def set_custom_delay(self, domain: str, delay: float) -> None:
        """Set a custom delay for a host, replacing any existing bucket.

        Args:
            domain: Host name
            delay: Seconds between requests (0 disables limiting for the host)
        """
        self._overrides[domain] = delay
        self._buckets.pop(domain, None)
