"""
Rate Limiter
============

Rolling fixed-window call counter per client identifier.

On every check the client's window is reset first if it has fully elapsed;
then the call is denied (without counting) once `max_calls` is reached, or
counted and allowed. There is no background timer and no persistence: a
restart clears every counter.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALLS = 15
DEFAULT_WINDOW_SECONDS = 24 * 60 * 60


@dataclass
class RateLimitCounter:
    count: int
    window_start: float


class RateLimiter:
    """
    Usage:
        limiter = RateLimiter(max_calls=15, window_seconds=86400)
        if not limiter.allow(client_ip):
            return rate_limited_payload()
    """

    def __init__(
        self,
        max_calls: int = DEFAULT_MAX_CALLS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = "ai",
    ):
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._counters: Dict[str, RateLimitCounter] = {}
        self._lock = threading.Lock()

    def allow(self, client_id: str) -> bool:
        """Count one call for client_id; False once the window's quota is used up."""
        now = self._clock()
        with self._lock:
            counter = self._counters.get(client_id)
            if counter is None:
                counter = RateLimitCounter(count=0, window_start=now)
                self._counters[client_id] = counter

            if now - counter.window_start >= self.window_seconds:
                counter.count = 0
                counter.window_start = now

            if counter.count >= self.max_calls:
                logger.info(f"[{self.name}] Rate limit reached for {client_id} ({counter.count}/{self.max_calls})")
                return False

            counter.count += 1
            return True

    def get_count(self, client_id: str) -> int:
        with self._lock:
            counter = self._counters.get(client_id)
            return counter.count if counter else 0

    def reset(self):
        with self._lock:
            self._counters.clear()
