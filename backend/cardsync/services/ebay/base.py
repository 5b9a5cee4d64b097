"""
Base types and errors for the eBay search client.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class Listing:
    """One sold listing returned by an eBay search."""

    title: str
    sale_price: Decimal
    condition: str
    sold_at: Optional[datetime]
    url: str


class SearchError(Exception):
    """A search call could not be completed."""


class TransientSearchError(SearchError):
    """Network failure, timeout or 5xx. Safe to retry."""


class RateLimitedError(SearchError):
    """
    The provider (or our own hourly budget) refused the call.

    Retrying would only burn budget, so callers stop and fall back to cache.
    """
