"""Fixed-window rate limiter that rejects instead of waiting."""

import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0


class RateLimiter:
    """Per-minute / per-hour request counters reset on fixed windows.

    ``try_acquire`` never sleeps: it either consumes a slot and returns
    ``True`` or returns ``False`` immediately. Callers surface the denial
    as :class:`~seo_research.errors.RateLimitError`.

    Usage::

        limiter = RateLimiter(requests_per_minute=30, requests_per_hour=1500)
        if not limiter.try_acquire():
            raise RateLimitError(limiter.name, limiter.status())
    """

    def __init__(
        self,
        requests_per_minute: int = 30,
        requests_per_hour: Optional[int] = 1500,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self._rpm = requests_per_minute
        self._rph = requests_per_hour
        self._name = name
        self._clock = clock
        now = clock()
        self._minute_start = now
        self._hour_start = now
        self._minute_count = 0
        self._hour_count = 0

    @property
    def name(self) -> str:
        return self._name

    def _roll_windows(self, now: float) -> None:
        """Reset any counter whose window has elapsed."""
        if now - self._minute_start >= MINUTE:
            self._minute_start = now
            self._minute_count = 0
        if now - self._hour_start >= HOUR:
            self._hour_start = now
            self._hour_count = 0

    def try_acquire(self) -> bool:
        """Consume one slot if both windows have room."""
        now = self._clock()
        self._roll_windows(now)
        if self._minute_count >= self._rpm:
            logger.warning(
                "RateLimiter(%s) denied: %d/%d this minute",
                self._name, self._minute_count, self._rpm,
            )
            return False
        if self._rph is not None and self._hour_count >= self._rph:
            logger.warning(
                "RateLimiter(%s) denied: %d/%d this hour",
                self._name, self._hour_count, self._rph,
            )
            return False
        self._minute_count += 1
        self._hour_count += 1
        logger.debug(
            "RateLimiter(%s) granted (%d/min, %d/hour)",
            self._name, self._minute_count, self._hour_count,
        )
        return True

    @property
    def requests_this_minute(self) -> int:
        self._roll_windows(self._clock())
        return self._minute_count

    @property
    def requests_this_hour(self) -> int:
        self._roll_windows(self._clock())
        return self._hour_count

    def status(self) -> dict[str, Any]:
        """Snapshot of both windows, including seconds until each resets."""
        now = self._clock()
        self._roll_windows(now)
        return {
            "name": self._name,
            "minute": {
                "used": self._minute_count,
                "limit": self._rpm,
                "reset_in": round(max(0.0, MINUTE - (now - self._minute_start)), 1),
            },
            "hour": {
                "used": self._hour_count,
                "limit": self._rph,
                "reset_in": round(max(0.0, HOUR - (now - self._hour_start)), 1),
            },
        }
