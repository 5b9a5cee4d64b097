"""
Card pricing engine: price cache, stores and the pricing service.
"""

from typing import Optional

from cardsync.core.config import settings
from cardsync.core.database import async_session
from cardsync.services.ebay import EbaySearchClient
from cardsync.services.pricing.cache import PriceCache
from cardsync.services.pricing.service import PricingService
from cardsync.services.pricing.stores import (
    CatalogStore,
    PriceCacheStore,
    SqlCatalogStore,
    SqlPriceCacheStore,
)
from cardsync.services.pricing.types import (
    CatalogItem,
    FetchError,
    NoSalesFound,
    PriceCacheEntry,
    PriceFound,
    PriceQuote,
    RefreshResult,
)
from cardsync.services.rate_limiting import BudgetTracker

__all__ = [
    "CatalogItem",
    "CatalogStore",
    "FetchError",
    "NoSalesFound",
    "PriceCache",
    "PriceCacheEntry",
    "PriceCacheStore",
    "PriceFound",
    "PriceQuote",
    "PricingService",
    "RefreshResult",
    "SqlCatalogStore",
    "SqlPriceCacheStore",
    "get_pricing_service",
]

# Global pricing service (owns the process-wide budget and failed set)
_pricing_service: Optional[PricingService] = None


def get_pricing_service() -> PricingService:
    """Get or create the global pricing service."""
    global _pricing_service
    if _pricing_service is None:
        budget = BudgetTracker(
            max_requests_per_hour=settings.EBAY_MAX_REQUESTS_PER_HOUR,
            min_interval_sec=settings.EBAY_MIN_REQUEST_INTERVAL_SEC,
        )
        _pricing_service = PricingService(
            catalog=SqlCatalogStore(async_session),
            cache=PriceCache(SqlPriceCacheStore(async_session)),
            client=EbaySearchClient(budget),
            budget=budget,
        )
    return _pricing_service
