"""
Relevance filter and price averaging for eBay listings.

A listing counts toward a card's price only when its title:
- mentions a trading-card brand or category keyword
- mentions at least one keyword (length > 2) from the card's name
- is not a comic/graphic-novel listing
- is not a graded slab (graded copies sell at a different price level)
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal

from cardsync.services.ebay.base import Listing

logger = logging.getLogger(__name__)

MAX_PRICED_LISTINGS = 5

CATEGORY_KEYWORDS = (
    "card",
    "trading",
    "fleer",
    "topps",
    "upper deck",
    "marvel",
    "skybox",
    "impel",
)

MISCATEGORIZED_TERMS = ("comic book", "graphic novel", "variant cover")

GRADED_TERMS = ("psa", "bgs", "cgc", "grade", "beckett", "gem mint", "slab")

_TOKEN_RE = re.compile(r"[a-z0-9]+")

CENTS = Decimal("0.01")


def name_keywords(card_name: str) -> list[str]:
    """'Spider-Man vs. Venom' -> ['spider', 'man', 'venom']"""
    return [t for t in _TOKEN_RE.findall((card_name or "").lower()) if len(t) > 2]


def is_relevant(title: str, keywords: list[str]) -> bool:
    title = (title or "").lower()

    if not any(k in title for k in CATEGORY_KEYWORDS):
        return False
    if not any(k in title for k in keywords):
        return False
    if any(t in title for t in MISCATEGORIZED_TERMS):
        return False
    if any(t in title for t in GRADED_TERMS):
        return False
    return True


def filter_relevant(
    listings: list[Listing], card_name: str, limit: int = MAX_PRICED_LISTINGS
) -> list[Listing]:
    """Keep relevant listings, capped to the first `limit`."""
    if not listings:
        return []

    keywords = name_keywords(card_name)
    kept = [item for item in listings if is_relevant(item.title, keywords)]

    logger.info(
        "Filtered listings for '%s': %d -> %d relevant", card_name, len(listings), len(kept)
    )
    for item in kept[:limit]:
        logger.debug("  accepted: '%s' - $%s", item.title, item.sale_price)

    return kept[:limit]


def average_price(listings: list[Listing]) -> Decimal:
    """Mean sale price rounded to cents. No listings -> 0.00."""
    if not listings:
        return Decimal("0.00")
    total = sum((item.sale_price for item in listings), Decimal("0"))
    return (total / len(listings)).quantize(CENTS, rounding=ROUND_HALF_UP)
