"""Per-caller cooldown rate limiter.

Each caller may start one analysis per time window. The timestamp map is
bounded: expired entries are evicted on every check and, once capacity is
reached, the least recently seen caller is dropped.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable

from promptlens.domain.exceptions import RateLimited

logger = logging.getLogger(__name__)

DEFAULT_TIME_WINDOW_SECONDS = 1.0
DEFAULT_MAX_CALLERS = 10000

class CallerRateLimiter:
    """Sliding cooldown keyed by caller identity."""

    def __init__(
        self,
        time_window: float = DEFAULT_TIME_WINDOW_SECONDS,
        max_callers: int = DEFAULT_MAX_CALLERS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the rate limiter.

        Args:
            time_window: Cooldown in seconds between two requests of one caller.
            max_callers: Maximum number of callers tracked at once.
            clock: Monotonic time source (injectable for tests).
        """
        if max_callers < 1:
            raise ValueError("max_callers must be at least 1")
        self.time_window = time_window
        self.max_callers = max_callers
        self._clock = clock
        # caller -> last request time; ordered oldest first
        self._last_seen: "OrderedDict[str, float]" = OrderedDict()
        self._lock = asyncio.Lock()
        logger.info(f"CallerRateLimiter initialized: 1 request / {time_window} seconds per caller")

    def __len__(self) -> int:
        return len(self._last_seen)

    def _evict_expired(self, now: float) -> None:
        """Removes callers whose last request is older than the time window."""
        while self._last_seen:
            caller, seen_at = next(iter(self._last_seen.items()))
            if now - seen_at < self.time_window:
                break
            self._last_seen.popitem(last=False)

    async def check(self, caller_id: str) -> None:
        """Admits the caller or raises RateLimited.

        The read and the write happen under one lock so two simultaneous
        requests from the same caller cannot both pass.
        """
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            last = self._last_seen.get(caller_id)
            if last is not None and now - last < self.time_window:
                logger.warning(f"Rate limit hit for caller '{caller_id}'")
                raise RateLimited(f"Rate limit exceeded (1 request per {self.time_window:g} seconds)")
            self._last_seen[caller_id] = now
            self._last_seen.move_to_end(caller_id)
            while len(self._last_seen) > self.max_callers:
                dropped, _ = self._last_seen.popitem(last=False)
                # The dropped caller loses any remaining cooldown
                logger.warning(f"Rate limiter at capacity ({self.max_callers}); dropped caller '{dropped}'")
