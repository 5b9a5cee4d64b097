"""
Pricing service: cache-first card valuations within the eBay budget.

get_price decision procedure:

  no entry,  budget left   -> fetch, cache, return the fresh value
  fresh entry              -> return it, no network call
  stale entry, no budget   -> return the stale value, queue the card for retry
  stale entry, budget left -> fetch:
                                ok (incl. zero sales) -> cache, return fresh value
                                failed -> cache the error sentinel, queue for
                                          retry, return the stale value
  no entry,  no budget     -> queue for retry, return None

The budget is checked again once the fetch lock is held; a fetch that finds
it exhausted then is handled as the matching no-budget case.

Cache rows keep two sentinels for compatibility with existing data:
  {price: 0.00, count: 0}                  eBay answered, nothing relevant sold
  {price: ERROR_SENTINEL_PRICE, count: -1} the fetch could not be completed
Inside the service outcomes are the tagged PriceFound / NoSalesFound /
FetchError types.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from cardsync.core.clock import SystemClock, system_clock
from cardsync.core.config import settings
from cardsync.services.ebay import (
    EbaySearchClient,
    RateLimitedError,
    average_price,
    build_search_queries,
    filter_relevant,
)
from cardsync.services.pricing.cache import PriceCache
from cardsync.services.pricing.stores import CatalogStore
from cardsync.services.pricing.types import (
    CatalogItem,
    FetchError,
    FetchOutcome,
    NoSalesFound,
    PriceCacheEntry,
    PriceFound,
    PriceQuote,
    RefreshResult,
)
from cardsync.services.rate_limiting import BudgetTracker

logger = logging.getLogger(__name__)


class PricingService:
    """Orchestrates cache, budget and eBay search for card prices."""

    def __init__(
        self,
        catalog: CatalogStore,
        cache: PriceCache,
        client: EbaySearchClient,
        budget: BudgetTracker,
        clock: SystemClock = system_clock,
        brand: str = settings.SEARCH_BRAND,
        error_price: Decimal = settings.ERROR_SENTINEL_PRICE,
    ):
        self.catalog = catalog
        self.cache = cache
        self.client = client
        self.budget = budget
        self.clock = clock
        self.brand = brand
        self.error_price = error_price

        # Cards whose last fetch did not complete; drained by the scheduler
        self.failed_card_ids: set[int] = set()
        # One fetch in flight at a time
        self._fetch_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    async def get_price(self, card_id: int) -> Optional[PriceQuote]:
        try:
            entry = await self.cache.get(card_id)
        except Exception:
            logger.exception("Price cache read failed for card %d", card_id)
            return None

        if entry is None:
            if self.budget.can_proceed():
                logger.info("No cached price for card %d, fetching", card_id)
                return (await self.sync_card(card_id)).quote
            logger.info("No cached price for card %d and budget exhausted", card_id)
            self.mark_failed(card_id)
            return None

        if not self.cache.is_stale(entry):
            return PriceQuote.from_entry(entry)

        if not self.budget.can_proceed():
            logger.info(
                "Stale price for card %d (fetched %s), budget exhausted, serving stale",
                card_id,
                entry.last_fetched.isoformat(),
            )
            self.mark_failed(card_id)
            return PriceQuote.from_entry(entry)

        return (await self.sync_card(card_id)).quote

    async def force_refresh(self, card_id: int) -> Optional[PriceQuote]:
        """
        User-triggered refresh: bypasses staleness and the hourly budget.

        The eBay calls take uncounted slots, so the refresh neither uses up
        the shared background quota nor opens it up for anyone else.
        Spacing between calls still applies.
        """
        async with self._fetch_lock:
            logger.info(
                "Force refresh for card %d (budget %d/%d, not counted)",
                card_id,
                self.budget.request_count,
                self.budget.max_requests_per_hour,
            )
            result = await self._sync_locked(card_id, bypass_budget=True)
        return result.quote

    async def sync_card(self, card_id: int) -> RefreshResult:
        """Budget-respecting fetch with the full outcome, for the scheduler."""
        async with self._fetch_lock:
            return await self._sync_locked(card_id)

    def get_status(self) -> dict:
        status = self.budget.status()
        status["pending_failed_count"] = len(self.failed_card_ids)
        return status

    # ------------------------------------------------------------------
    # Failed-retry set
    # ------------------------------------------------------------------

    def mark_failed(self, card_id: int) -> None:
        self.failed_card_ids.add(card_id)

    def clear_failed(self, card_id: int) -> None:
        self.failed_card_ids.discard(card_id)

    def take_failed(self) -> list[int]:
        """Empty the failed set and return what was in it."""
        card_ids = sorted(self.failed_card_ids)
        self.failed_card_ids.clear()
        return card_ids

    # ------------------------------------------------------------------
    # Fetch path
    # ------------------------------------------------------------------

    async def _sync_locked(self, card_id: int, bypass_budget: bool = False) -> RefreshResult:
        previous: Optional[PriceCacheEntry] = None
        try:
            item = await self.catalog.get_item(card_id)
            if item is None:
                logger.error("Card %d not found in catalog", card_id)
                return RefreshResult(quote=None, outcome=None)

            previous = await self.cache.get(card_id)

            # The budget may have run out while this call waited for the lock
            if not bypass_budget and not self.budget.can_proceed():
                logger.info("Budget exhausted before fetching card %d, deferring", card_id)
                self.mark_failed(card_id)
                return RefreshResult(
                    quote=PriceQuote.from_entry(previous) if previous else None,
                    outcome=FetchError("hourly budget exhausted", rate_limited=True),
                    deferred=True,
                )

            outcome = await self.fetch_outcome(item, bypass_budget=bypass_budget)
            quote = await self._record(item, outcome, previous)
            return RefreshResult(quote=quote, outcome=outcome)
        except Exception as exc:
            logger.exception("Pricing refresh failed for card %d", card_id)
            self.mark_failed(card_id)
            fallback = PriceQuote.from_entry(previous) if previous else None
            return RefreshResult(quote=fallback, outcome=FetchError(str(exc)))

    async def fetch_outcome(self, item: CatalogItem, bypass_budget: bool = False) -> FetchOutcome:
        queries = build_search_queries(
            item.set_name,
            item.name,
            item.card_number,
            brand=self.brand,
            is_insert=item.is_insert,
            description=item.description,
        )
        logger.info(
            "Fetching eBay pricing for '%s' from '%s' #%s (%d query variants)",
            item.name,
            item.set_name,
            item.card_number,
            len(queries),
        )

        try:
            found = await self.client.search_variants(queries, bypass_budget=bypass_budget)
        except RateLimitedError as exc:
            logger.warning("eBay rate limited while pricing card %d: %s", item.id, exc)
            return FetchError(str(exc), rate_limited=True)

        if not found.listings:
            if found.complete:
                return NoSalesFound()
            return FetchError(f"{found.failed}/{found.attempted} query variants failed")

        relevant = filter_relevant(found.listings, item.name)
        if not relevant:
            logger.info(
                "No relevant listings for '%s' (rejected %d), recording $0.00",
                item.name,
                len(found.listings),
            )
            return NoSalesFound()

        return PriceFound(
            price=average_price(relevant),
            sales_count=len(relevant),
            references=[listing.url for listing in relevant],
        )

    async def _record(
        self,
        item: CatalogItem,
        outcome: FetchOutcome,
        previous: Optional[PriceCacheEntry],
    ) -> PriceQuote:
        if isinstance(outcome, PriceFound):
            entry = await self.cache.upsert(
                item.id, outcome.price, outcome.references, outcome.sales_count
            )
            self.clear_failed(item.id)
            logger.info(
                "Updated pricing for '%s': $%s (%d sales)",
                item.name,
                entry.avg_price,
                entry.sales_count,
            )
            return PriceQuote.from_entry(entry)

        if isinstance(outcome, NoSalesFound):
            entry = await self.cache.upsert(item.id, Decimal("0"), [], 0)
            self.clear_failed(item.id)
            return PriceQuote.from_entry(entry)

        entry = await self.cache.upsert(item.id, self.error_price, [], -1)
        self.mark_failed(item.id)
        logger.warning("Pricing for card %d failed: %s", item.id, outcome.reason)

        if previous is not None:
            return PriceQuote.from_entry(previous)
        return PriceQuote.from_entry(entry)
