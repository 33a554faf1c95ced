from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """
    Allows at most `max_requests` calls to acquire() per rolling `window_s`.

    The request log is per instance; build one limiter per ingestion run.
    `clock` and `sleep` are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_s: float = 1.0,
        buffer_s: float = 0.1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self.max_requests = max_requests
        self.window_s = window_s
        self.buffer_s = buffer_s
        self._clock = clock
        self._sleep = sleep
        self._requests: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.window_s:
            self._requests.popleft()

    def acquire(self) -> float:
        """Block until a request may be issued. Returns the seconds slept."""
        now = self._clock()
        self._prune(now)

        waited = 0.0
        if len(self._requests) >= self.max_requests:
            oldest = self._requests[0]
            waited = self.window_s - (now - oldest) + self.buffer_s
            if waited > 0:
                logger.debug("rate limit reached, sleeping %.3fs", waited)
                self._sleep(waited)
            self._prune(self._clock())

        self._requests.append(self._clock())
        return max(waited, 0.0)

    @property
    def in_window(self) -> int:
        return len(self._requests)
