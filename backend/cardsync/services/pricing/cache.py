"""
Price cache: one entry per card with a fixed 24h freshness window.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from cardsync.core.clock import SystemClock, system_clock
from cardsync.core.config import settings
from cardsync.services.pricing.stores import PriceCacheStore
from cardsync.services.pricing.types import PriceCacheEntry

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class PriceCache:
    """Keyed store of {price, count, timestamp} per card."""

    def __init__(
        self,
        store: PriceCacheStore,
        clock: SystemClock = system_clock,
        stale_after: timedelta = timedelta(hours=settings.PRICE_STALE_AFTER_HOURS),
        max_references: int = settings.MAX_RECENT_SALES,
    ):
        self.store = store
        self.clock = clock
        self.stale_after = stale_after
        self.max_references = max_references

    async def get(self, card_id: int) -> Optional[PriceCacheEntry]:
        return await self.store.get_entry(card_id)

    async def upsert(
        self,
        card_id: int,
        price: Decimal,
        references: list[str],
        count: int,
    ) -> PriceCacheEntry:
        """Create or overwrite the card's entry, stamped with the current time."""
        entry = await self.store.upsert_entry(
            card_id,
            Decimal(price).quantize(CENTS, rounding=ROUND_HALF_UP),
            list(references)[: self.max_references],
            count,
            self.clock.now(),
        )
        logger.debug(
            "Price cache upsert: card %d -> %s (%d sales)", card_id, entry.avg_price, count
        )
        return entry

    def is_stale(self, entry: PriceCacheEntry) -> bool:
        return self.clock.now() - entry.last_fetched > self.stale_after

    async def stale_card_ids(self, limit: int) -> list[int]:
        return await self.store.stale_card_ids(self.clock.now() - self.stale_after, limit)
