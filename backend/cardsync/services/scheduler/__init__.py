"""
Pricing job scheduling: priority queue and background refresh loop.
"""

from typing import Optional

from cardsync.services.pricing import get_pricing_service
from cardsync.services.scheduler.background import BackgroundPricing
from cardsync.services.scheduler.pricing_queue import (
    DrainReport,
    JobState,
    PricingQueue,
    Priority,
)

__all__ = [
    "BackgroundPricing",
    "DrainReport",
    "JobState",
    "PricingQueue",
    "Priority",
    "get_background_pricing",
    "get_pricing_queue",
    "start_background_pricing",
    "stop_background_pricing",
]

# Global instances
_pricing_queue: Optional[PricingQueue] = None
_background: Optional[BackgroundPricing] = None


def get_pricing_queue() -> PricingQueue:
    """Get or create the global pricing queue."""
    global _pricing_queue
    if _pricing_queue is None:
        pricing = get_pricing_service()
        _pricing_queue = PricingQueue(pricing, pricing.catalog)
    return _pricing_queue


def get_background_pricing() -> BackgroundPricing:
    global _background
    if _background is None:
        _background = BackgroundPricing(get_pricing_queue())
    return _background


async def start_background_pricing():
    """Start the global background refresh loop."""
    await get_background_pricing().start()


async def stop_background_pricing():
    """Stop the global background refresh loop."""
    await get_background_pricing().stop()
