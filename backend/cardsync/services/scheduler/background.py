"""
Background pricing refresh.

Each cycle:
1. retries cards in the failed set, if the budget window allows
2. queues trending cards
3. sweeps stale / never-priced cards into the queue
4. drains the queue until it is empty or the budget runs out

Runs inside the FastAPI lifespan as an asyncio task.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from cardsync.core.config import settings
from cardsync.services.scheduler.pricing_queue import PricingQueue

logger = logging.getLogger(__name__)


class BackgroundPricing:
    """Periodic refresh loop around a PricingQueue."""

    def __init__(self, queue: PricingQueue, interval: int = None):
        """
        Args:
            queue: The queue to feed and drain
            interval: Seconds between cycles (default from settings)
        """
        self.queue = queue
        self.interval = interval or settings.PRICING_SWEEP_INTERVAL_SEC
        self._is_running = False
        self._task: Optional[asyncio.Task] = None

        # Statistics
        self.total_cycles = 0
        self.last_cycle_time: Optional[datetime] = None

    async def start(self):
        """Start the refresh loop."""
        if self._is_running:
            logger.warning("BackgroundPricing already running")
            return

        self._is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("BackgroundPricing started with %ds interval", self.interval)

    async def stop(self):
        """Stop the refresh loop."""
        if not self._is_running:
            return

        logger.info("Stopping BackgroundPricing...")
        self._is_running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("BackgroundPricing stopped")

    async def _loop(self):
        while self._is_running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("BackgroundPricing cycle failed: %s", e, exc_info=True)

            if self._is_running:
                await asyncio.sleep(self.interval)

    async def run_cycle(self) -> dict:
        """Execute a single refresh cycle."""
        queue = self.queue
        pricing = queue.pricing
        self.last_cycle_time = queue.clock.now()

        retried = None
        if pricing.failed_card_ids and pricing.budget.can_proceed():
            retried = await queue.retry_failed()

        trending = await queue.enqueue_trending()
        swept = await queue.sweep_stale()
        report = await queue.drain()

        self.total_cycles += 1
        logger.info(
            "Pricing cycle #%d: %d trending + %d stale queued, %d processed, %d deferred",
            self.total_cycles,
            trending,
            swept,
            report.processed,
            report.deferred,
        )
        return {
            "retried": retried.processed if retried else 0,
            "trending_queued": trending,
            "stale_queued": swept,
            "processed": report.processed,
            "deferred": report.deferred,
        }

    def get_stats(self) -> dict:
        return {
            "is_running": self._is_running,
            "total_cycles": self.total_cycles,
            "last_cycle_time": self.last_cycle_time.isoformat() if self.last_cycle_time else None,
            "interval_sec": self.interval,
        }
