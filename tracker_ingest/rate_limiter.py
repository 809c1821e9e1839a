# tracker_ingest/rate_limiter.py

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Fixed one-minute window with a minimum gap between requests.

    The gap (60s / limit) applies even inside a fresh window so a burst is
    spread out instead of being fired at once and then blocked. Callers are
    only ever delayed, never rejected.

    acquire() reserves the next free slot under the lock and sleeps after
    releasing it, so concurrent callers get distinct slots and status()
    never waits behind a sleeping caller.
    """

    def __init__(
        self,
        limit_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if limit_per_minute < 1:
            raise ValueError("limit_per_minute must be at least 1")
        self.limit_per_minute = limit_per_minute
        self.min_interval = WINDOW_SECONDS / limit_per_minute
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._window_start = clock()
        self._count = 0
        self._last_request: Optional[float] = None
        self.total_calls = 0
        self.total_wait_seconds = 0.0

    def acquire(self) -> float:
        """Block until a request may be sent. Returns the seconds spent waiting."""
        with self._lock:
            now = self._clock()
            slot = now
            if self._last_request is not None:
                slot = max(slot, self._last_request + self.min_interval)

            if slot - self._window_start >= WINDOW_SECONDS:
                self._window_start = slot
                self._count = 0

            if self._count >= self.limit_per_minute:
                slot = max(slot, self._window_start + WINDOW_SECONDS)
                self._window_start = slot
                self._count = 0
                logger.warning(
                    "Rate limit reached (%s/min). Waiting %.1fs", self.limit_per_minute, slot - now
                )

            self._last_request = slot
            self._count += 1
            self.total_calls += 1
            waited = max(0.0, slot - now)
            self.total_wait_seconds += waited

        if waited > 0:
            self._sleep(waited)
        return waited

    def status(self) -> Dict[str, object]:
        with self._lock:
            now = self._clock()
            elapsed = now - self._window_start
            in_window = self._count if elapsed < WINDOW_SECONDS else 0
            reset_in = max(0.0, WINDOW_SECONDS - elapsed) if elapsed < WINDOW_SECONDS else 0.0
            if in_window >= self.limit_per_minute:
                state = "throttled"
            elif in_window >= self.limit_per_minute * 0.8:
                state = "warning"
            else:
                state = "safe"
            return {
                "status": state,
                "calls_in_window": in_window,
                "max_calls": self.limit_per_minute,
                "calls_made": self.total_calls,
                "window_reset_seconds": round(reset_in, 1),
                "min_interval_seconds": round(self.min_interval, 3),
            }


_shared_lock = threading.Lock()
_shared_limiter: Optional[RateLimiter] = None


def shared_rate_limiter(limit_per_minute: int) -> RateLimiter:
    """Return the process-wide limiter, creating it on first use."""
    global _shared_limiter
    with _shared_lock:
        if _shared_limiter is None:
            _shared_limiter = RateLimiter(limit_per_minute)
        elif _shared_limiter.limit_per_minute != limit_per_minute:
            logger.warning(
                "Shared rate limiter already configured at %s/min; ignoring %s/min",
                _shared_limiter.limit_per_minute,
                limit_per_minute,
            )
        return _shared_limiter
