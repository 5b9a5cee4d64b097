"""
Value types shared by the pricing engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class CatalogItem:
    """A card as the catalog knows it. Read-only here."""

    id: int
    name: str
    card_number: str
    set_name: str
    is_insert: bool = False
    description: Optional[str] = None


@dataclass
class PriceCacheEntry:
    card_id: int
    avg_price: Decimal
    sales_count: int
    recent_sales: list[str]
    last_fetched: datetime

    @property
    def is_error(self) -> bool:
        return self.sales_count < 0


@dataclass(frozen=True)
class PriceQuote:
    """
    What callers get back.

    Check sales_count >= 0 before trusting price: -1 marks a failed fetch and
    price then holds the error sentinel, not a valuation.
    """

    price: Decimal
    sales_count: int
    last_fetched_at: datetime

    @property
    def is_error(self) -> bool:
        return self.sales_count < 0

    @property
    def has_sales(self) -> bool:
        return self.sales_count > 0

    @classmethod
    def from_entry(cls, entry: PriceCacheEntry) -> "PriceQuote":
        return cls(
            price=entry.avg_price,
            sales_count=entry.sales_count,
            last_fetched_at=entry.last_fetched,
        )


# Fetch outcomes. Only the cache row encodes these as sentinel values.


@dataclass(frozen=True)
class PriceFound:
    price: Decimal
    sales_count: int
    references: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NoSalesFound:
    """eBay answered; nothing relevant has sold."""


@dataclass(frozen=True)
class FetchError:
    reason: str
    rate_limited: bool = False


FetchOutcome = Union[PriceFound, NoSalesFound, FetchError]


@dataclass(frozen=True)
class RefreshResult:
    quote: Optional[PriceQuote]
    outcome: Optional[FetchOutcome]  # None: card not in catalog
    deferred: bool = False  # budget ran out before the fetch started

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, (PriceFound, NoSalesFound))
