"""Per-client rate limiting for the public verification routes.

In-memory sliding window keyed by client address. Two quotas share one
window length: the standard quota covers single-certificate and signature
checks, the bulk quota covers batch requests.

Counters live in process memory; a multi-replica deployment limits each
replica independently.
"""

import logging
import math
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List

from fastapi import Request

from app.core.config import (
    BULK_RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
)

from .exceptions import RateLimitExceededError

log = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Allows ``max_requests`` per key within any ``window_seconds`` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        message: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._buckets: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def check(self, key: str) -> None:
        """Count one request for ``key``.

        Raises:
            RateLimitExceededError: ``key`` already made max_requests
                requests inside the current window. Rejected requests are
                not counted.
        """
        with self._lock:
            now = self._clock()
            bucket = [ts for ts in self._buckets[key] if now - ts < self.window_seconds]
            self._buckets[key] = bucket

            if len(bucket) >= self.max_requests:
                retry_after = max(1, math.ceil(self.window_seconds - (now - bucket[0])))
                log.warning(f"Rate limit exceeded for {key} (retry in {retry_after}s)")
                raise RateLimitExceededError(self.message, retry_after)
            bucket.append(now)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


_verify_limiter = SlidingWindowLimiter(
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    "Too many verification requests. Please try again later.",
)
_bulk_limiter = SlidingWindowLimiter(
    BULK_RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    "Too many bulk verification requests. Please try again later.",
)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limit_verify(request: Request):
    """Standard quota for single verifications and signature checks."""
    _verify_limiter.check(_client_key(request))


def rate_limit_bulk(request: Request):
    """Stricter quota for bulk verification."""
    _bulk_limiter.check(_client_key(request))


def reset_rate_limits() -> None:
    """Forget all counted requests (tests and operator resets)."""
    _verify_limiter.reset()
    _bulk_limiter.reset()
