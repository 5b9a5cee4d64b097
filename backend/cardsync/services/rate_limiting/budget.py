"""
Hourly request budget for the eBay API.

Two limits apply to every outbound call:
- an hourly ceiling (EBAY_MAX_REQUESTS_PER_HOUR), checked with can_proceed()
- a minimum spacing between calls (EBAY_MIN_REQUEST_INTERVAL_SEC), waited out
  by wait_for_slot()

User-triggered refreshes take an uncounted slot (wait_for_slot(count=False)):
they keep the spacing but never touch the hourly counters.

The window resets lazily: whenever the tracker is consulted after
window_reset_at, the count drops to zero and a new hour starts.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from cardsync.core.clock import SystemClock, system_clock

logger = logging.getLogger(__name__)

WINDOW = timedelta(hours=1)


class BudgetTracker:
    """
    Process-wide request budget.

    Usage:
        budget = BudgetTracker(max_requests_per_hour=70, min_interval_sec=3.0)
        if budget.can_proceed():
            await budget.wait_for_slot()
            # make the API request
    """

    def __init__(
        self,
        max_requests_per_hour: int,
        min_interval_sec: float,
        clock: SystemClock = system_clock,
    ):
        self.max_requests_per_hour = max_requests_per_hour
        self.min_interval_sec = min_interval_sec
        self.clock = clock

        self.request_count = 0
        self.window_reset_at = clock.now() + WINDOW
        self.last_request_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def _roll_window(self) -> None:
        now = self.clock.now()
        if now > self.window_reset_at:
            logger.info(
                "eBay budget window reset (%d requests used last window)",
                self.request_count,
            )
            self.request_count = 0
            self.window_reset_at = now + WINDOW

    def can_proceed(self) -> bool:
        """True while the current window has requests left. Never raises."""
        self._roll_window()
        return self.request_count < self.max_requests_per_hour

    def record_request(self) -> None:
        self._roll_window()
        self.request_count += 1
        self.last_request_at = self.clock.now()

    def minimum_delay_remaining(self) -> float:
        """Seconds to wait before the next call keeps the spacing."""
        if self.last_request_at is None:
            return 0.0
        elapsed = (self.clock.now() - self.last_request_at).total_seconds()
        return max(0.0, self.min_interval_sec - elapsed)

    async def wait_for_slot(self, count: bool = True) -> None:
        """
        Wait out the spacing, then mark the request that follows.

        With count=False the request only moves the spacing clock; the
        hourly counters are left as they are.
        """
        async with self._lock:
            delay = self.minimum_delay_remaining()
            if delay > 0:
                logger.debug("Rate limiting: waiting %.2fs before next eBay call", delay)
                await self.clock.sleep(delay)
            if count:
                self.record_request()
            else:
                self.last_request_at = self.clock.now()

    def status(self) -> dict:
        can_proceed = self.can_proceed()
        return {
            "request_count": self.request_count,
            "budget_max": self.max_requests_per_hour,
            "can_proceed": can_proceed,
            "window_reset_at": self.window_reset_at,
        }
