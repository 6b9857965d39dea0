"""Per-connection token bucket for inbound WebSocket frames."""

import time


class TokenBucket:
    """Allow ``rate`` messages per second on average, ``burst`` at once.

    consume() takes one token and returns False when none is left; the
    caller answers with RATE_LIMITED and drops the frame.
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    def consume(self) -> bool:
        now = time.monotonic()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True
