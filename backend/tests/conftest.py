from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest

from cardsync.services.ebay import Listing, VariantSearch
from cardsync.services.pricing import (
    CatalogItem,
    PriceCache,
    PriceCacheEntry,
    PricingService,
)
from cardsync.services.rate_limiting import BudgetTracker

T0 = datetime(2026, 1, 15, 12, 0, 0)


class FakeClock:
    """Simulated clock: sleep() records the delay and advances time."""

    def __init__(self, start: datetime = T0):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.current += timedelta(seconds=seconds)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class YieldingClock(FakeClock):
    """FakeClock whose sleep() hands control back to the event loop."""

    async def sleep(self, seconds: float) -> None:
        await super().sleep(seconds)
        await asyncio.sleep(0)


class InMemoryCatalog:
    def __init__(self, items=(), owners: Optional[dict[int, list[int]]] = None):
        self.items = {item.id: item for item in items}
        self.owners = owners or {}
        self.priced: set[int] = set()

    async def get_item(self, card_id: int) -> Optional[CatalogItem]:
        return self.items.get(card_id)

    async def unpriced_card_ids(self, limit: int) -> list[int]:
        return [cid for cid in sorted(self.items) if cid not in self.priced][:limit]

    async def owned_card_ids(self, user_id: int) -> list[int]:
        return list(self.owners.get(user_id, []))

    async def popular_card_ids(self, limit: int) -> list[int]:
        counts: dict[int, int] = {}
        for card_ids in self.owners.values():
            for cid in card_ids:
                counts[cid] = counts.get(cid, 0) + 1
        return sorted(counts, key=lambda cid: (-counts[cid], cid))[:limit]


class InMemoryPriceStore:
    def __init__(self, catalog: Optional[InMemoryCatalog] = None):
        self.rows: dict[int, PriceCacheEntry] = {}
        self.catalog = catalog
        self.fail_reads = False

    async def get_entry(self, card_id: int) -> Optional[PriceCacheEntry]:
        if self.fail_reads:
            raise ConnectionError("database unavailable")
        return self.rows.get(card_id)

    async def upsert_entry(self, card_id, avg_price, recent_sales, sales_count, last_fetched):
        entry = PriceCacheEntry(card_id, avg_price, sales_count, list(recent_sales), last_fetched)
        self.rows[card_id] = entry
        if self.catalog is not None:
            self.catalog.priced.add(card_id)
        return entry

    async def stale_card_ids(self, fetched_before: datetime, limit: int) -> list[int]:
        stale = [e for e in self.rows.values() if e.last_fetched < fetched_before]
        stale.sort(key=lambda e: e.last_fetched)
        return [e.card_id for e in stale][:limit]

    def seed(self, card_id, price, count, last_fetched, references=()):
        self.rows[card_id] = PriceCacheEntry(
            card_id, Decimal(price), count, list(references), last_fetched
        )
        if self.catalog is not None:
            self.catalog.priced.add(card_id)


class FakeSearchClient:
    """
    Stands in for EbaySearchClient.search_variants.

    Each call consumes one budget request per attempted query so the budget
    behaves as it would against eBay.
    """

    def __init__(self, budget: BudgetTracker):
        self.budget = budget
        self.results: dict[str, VariantSearch] = {}
        self.default = VariantSearch(attempted=1)
        self.error: Optional[Exception] = None
        self.calls: list[list[str]] = []

    async def search_variants(
        self, queries: list[str], bypass_budget: bool = False
    ) -> VariantSearch:
        self.calls.append(list(queries))
        if self.error is not None:
            raise self.error
        await self.budget.wait_for_slot(count=not bypass_budget)
        for query in queries:
            if query in self.results:
                return self.results[query]
        return self.default

    def respond_with(self, listings: list[Listing], failed: int = 0) -> None:
        self.default = VariantSearch(
            listings=listings, matched_query="*", attempted=max(1, failed), failed=failed
        )


def make_listing(title: str, price: str, url: str = "https://ebay.test/1") -> Listing:
    return Listing(
        title=title,
        sale_price=Decimal(price),
        condition="Used",
        sold_at=T0 - timedelta(days=2),
        url=url,
    )


def finding_item(title, price, url, end_time="2026-01-10T18:22:01.000Z"):
    return {
        "title": [title],
        "viewItemURL": [url],
        "sellingStatus": [{"convertedCurrentPrice": [{"@currencyId": "USD", "__value__": price}]}],
        "condition": [{"conditionDisplayName": ["Used"]}],
        "listingInfo": [{"endTime": [end_time]}],
    }


def finding_response(*items, ack="Success"):
    return {
        "findCompletedItemsResponse": [
            {
                "ack": [ack],
                "searchResult": [{"@count": str(len(items)), "item": list(items)}],
            }
        ]
    }


SPIDER_MAN = CatalogItem(
    id=1,
    name="Spider-Man",
    card_number="1",
    set_name="1992 Marvel Masterpieces",
)
WOLVERINE = CatalogItem(
    id=2,
    name="Wolverine",
    card_number="14",
    set_name="1992 Marvel Masterpieces",
)
VENOM = CatalogItem(
    id=3,
    name="Venom",
    card_number="88",
    set_name="1993 Marvel Masterpieces",
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def budget(clock):
    return BudgetTracker(max_requests_per_hour=70, min_interval_sec=3.0, clock=clock)


@pytest.fixture
def catalog():
    return InMemoryCatalog(
        [SPIDER_MAN, WOLVERINE, VENOM],
        owners={10: [1, 3], 11: [3], 12: [2, 3]},
    )


@pytest.fixture
def store(catalog):
    return InMemoryPriceStore(catalog)


@pytest.fixture
def cache(store, clock):
    return PriceCache(store, clock=clock, stale_after=timedelta(hours=24), max_references=5)


@pytest.fixture
def search(budget):
    return FakeSearchClient(budget)


@pytest.fixture
def service(catalog, cache, search, budget, clock):
    return PricingService(
        catalog=catalog,
        cache=cache,
        client=search,
        budget=budget,
        clock=clock,
        brand="Marvel",
        error_price=Decimal("0.02"),
    )
