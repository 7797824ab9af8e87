"""Thread-safe token bucket used to pace outgoing requests.

Tokens refill at a fixed rate up to a burst ceiling.  A caller that finds
the bucket empty is told how long to wait and sleeps for that long.  Batch
workers share one bucket per remote API, so the lock only guards the
bookkeeping and sleeping happens outside it.
"""

from __future__ import annotations

import threading
import time


class TokenBucket:
    """Token bucket for synchronous rate limiting.

    Parameters
    ----------
    rate_rps:
        Sustained refill rate in tokens per second.
    burst:
        Maximum number of tokens the bucket can hold.
    """

    __slots__ = ("_lock", "burst", "last_refill", "rate", "tokens")

    def __init__(self, rate_rps: float, burst: int = 10) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self.rate: float = rate_rps
        self.burst: int = burst
        self.tokens: float = float(burst)
        self.last_refill: float = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self, tokens: int = 1) -> float:
        """Take *tokens* from the bucket, sleeping if necessary.

        Returns the number of seconds waited (``0.0`` when tokens were
        available immediately).
        """
        with self._lock:
            now = time.monotonic()
            self.tokens = min(self.burst, self.tokens + (now - self.last_refill) * self.rate)
            self.last_refill = now

            if self.tokens >= tokens:
                self.tokens -= tokens
                return 0.0

            wait = (tokens - self.tokens) / self.rate
            # The deficit is paid for by this caller; later callers queue
            # behind it through the negative balance.
            self.tokens -= tokens

        time.sleep(wait)
        return wait
