"""
eBay sold-listing search: query variants, client and relevance filter.
"""

from cardsync.services.ebay.base import (
    Listing,
    RateLimitedError,
    SearchError,
    TransientSearchError,
)
from cardsync.services.ebay.client import EbaySearchClient, VariantSearch, parse_finding_response
from cardsync.services.ebay.filtering import average_price, filter_relevant
from cardsync.services.ebay.queries import build_search_queries

__all__ = [
    "EbaySearchClient",
    "Listing",
    "RateLimitedError",
    "SearchError",
    "TransientSearchError",
    "VariantSearch",
    "average_price",
    "build_search_queries",
    "filter_relevant",
    "parse_finding_response",
]
