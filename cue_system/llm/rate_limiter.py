"""Token bucket rate limiter for Gemini request throttling."""

import asyncio
import time
import threading
from typing import Optional

from loguru import logger


class TokenBucket:
    """
    Token bucket algorithm implementation for rate limiting.

    Tokens refill continuously at a fixed rate. Requests consume tokens.
    If insufficient tokens are available, the request must wait.

    Attributes:
        capacity: Maximum number of tokens the bucket can hold
        refill_rate: Tokens added per second
        tokens: Current number of tokens available
        last_refill: Timestamp of last token refill
        lock: Thread lock for safe concurrent access
    """

    def __init__(self, capacity: int, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.monotonic()
        self.lock = threading.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def available(self, tokens: float) -> bool:
        with self.lock:
            self._refill()
            return self.tokens >= tokens

    def acquire(self, tokens: float = 1) -> bool:
        """
        Attempt to acquire tokens from the bucket (thread-safe).

        Returns:
            True if tokens were acquired, False if insufficient tokens available
        """
        with self.lock:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False

    def seconds_until(self, tokens: float) -> float:
        """Time until the bucket holds the requested tokens."""
        with self.lock:
            self._refill()
            missing = max(0.0, tokens - self.tokens)
        return missing / self.refill_rate if self.refill_rate > 0 else float("inf")


class RateLimiter:
    """
    Requests-per-minute and tokens-per-minute limiter shared by every
    Gemini caller (classifier and term generator).

    Attributes:
        rpm_bucket: Token bucket for request rate limiting
        tpm_bucket: Token bucket for token rate limiting
    """

    def __init__(
        self,
        max_rpm: Optional[int] = None,
        max_tpm: Optional[int] = None
    ):
        from cue_system.config.settings import settings

        rpm = max_rpm or settings.max_rpm
        tpm = max_tpm or settings.max_tpm

        self.rpm_bucket = TokenBucket(capacity=rpm, refill_rate=rpm / 60.0)
        self.tpm_bucket = TokenBucket(capacity=tpm, refill_rate=tpm / 60.0)

        logger.bind(component="RateLimiter").info(
            f"RateLimiter initialized: {rpm} RPM, {tpm:,} TPM"
        )

    def can_proceed(self, token_count: int) -> bool:
        """
        Consume one request and token_count tokens if BOTH buckets allow it.

        Returns:
            True if request can proceed, False if rate limited
        """
        token_count = min(token_count, self.tpm_bucket.capacity)
        if not self.rpm_bucket.available(1):
            return False
        if not self.tpm_bucket.available(token_count):
            return False

        self.rpm_bucket.acquire(1)
        self.tpm_bucket.acquire(token_count)
        return True

    async def wait(self, token_count: int) -> None:
        """Suspend until the request fits under both limits."""
        token_count = min(token_count, self.tpm_bucket.capacity)
        while not self.can_proceed(token_count):
            delay = max(
                self.rpm_bucket.seconds_until(1),
                self.tpm_bucket.seconds_until(token_count),
                0.05,
            )
            logger.bind(component="RateLimiter").debug(f"Rate limited, waiting {delay:.2f}s")
            await asyncio.sleep(delay)


_shared_limiter: Optional[RateLimiter] = None


def get_shared_rate_limiter() -> RateLimiter:
    """Process-wide limiter used by every GeminiClient built without one."""
    global _shared_limiter
    if _shared_limiter is None:
        _shared_limiter = RateLimiter()
    return _shared_limiter
