"""
Time source for the pricing engine.

Budget windows, spacing waits, backoff delays and cache staleness all read the
clock through this object so tests can substitute a simulated one.
"""

import asyncio
from datetime import datetime, timezone


class SystemClock:
    """Wall clock. Timestamps are naive UTC to match the DateTime columns."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


system_clock = SystemClock()
