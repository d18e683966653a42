"""Token bucket rate limiter for per-domain rate limiting."""

import asyncio
import time
from typing import Dict, Optional


class TokenBucket:
    """Token bucket algorithm implementation for rate limiting.

    The bucket starts full and refills at a constant rate.
    Each request consumes one token. If no tokens are available,
    the request waits until tokens are refilled.
    """

    def __init__(self, rate: float, capacity: float):
        """Initialize token bucket.

        Args:
            rate: Tokens per second (e.g., 1.0 = 60 RPM)
            capacity: Maximum tokens in bucket (burst capacity)
        """
        self.rate = rate  # tokens per second
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        """Refill tokens based on elapsed time since last refill."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire (default 1.0)
        """
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)


class DomainRateLimiter:
    """Per-domain rate limiter using token bucket algorithm.

    Public geocoders publish usage policies; each upstream domain gets
    its own bucket so a burst against one never delays another.
    """

    # Requests per minute and burst capacity for known upstreams.
    # Nominatim's usage policy allows at most one request per second.
    DOMAIN_LIMITS = {
        "nominatim.openstreetmap.org": (60, 1.0),
        "overpass-api.de": (10, 2.0),
        "overpass.kumi.systems": (10, 2.0),
        "overpass.openstreetmap.ru": (10, 2.0),
    }

    DEFAULT_RPM = 30

    def __init__(self):
        """Initialize rate limiter with empty bucket dictionary."""
        self._buckets: Dict[str, TokenBucket] = {}

    def _get_bucket(self, domain: str) -> TokenBucket:
        if domain not in self._buckets:
            rpm, capacity = self.DOMAIN_LIMITS.get(
                domain, (self.DEFAULT_RPM, max(2.0, self.DEFAULT_RPM / 10.0))
            )
            self._buckets[domain] = TokenBucket(rate=rpm / 60.0, capacity=capacity)
        return self._buckets[domain]

    async def acquire(self, domain: str, tokens: float = 1.0) -> None:
        """Block until the bucket for ``domain`` allows another request."""
        bucket = self._get_bucket(domain)
        await bucket.acquire(tokens)

    def set_custom_limit(self, domain: str, rpm: int, capacity: Optional[float] = None) -> None:
        """Set a custom rate limit for a domain.

        Args:
            domain: Domain name
            rpm: Requests per minute limit
            capacity: Burst size; defaults to 10% of ``rpm`` (min 1)

        Note:
            If a bucket already exists for this domain, it will be replaced.
        """
        if capacity is None:
            capacity = max(1.0, rpm / 10.0)
        self._buckets[domain] = TokenBucket(rate=rpm / 60.0, capacity=capacity)

    def get_current_rate(self, domain: str) -> float:
        """Current limit for ``domain`` in requests per minute."""
        return self._get_bucket(domain).rate * 60.0
