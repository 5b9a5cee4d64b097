"""
eBay Finding API client for sold trading-card listings.

One findCompletedItems call per query variant, filtered to sold items in the
trading-card category. Every call goes through the shared BudgetTracker:
- the hourly ceiling is checked first (exhausted -> RateLimitedError)
- the minimum spacing is waited out and the request is counted

bypass_budget=True (user-triggered refreshes) skips the ceiling and leaves
the counters alone; the spacing still applies.

Transient failures retry with exponential backoff (2s, 4s, 8s). A rate-limit
signal stops the retries at once.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import aiohttp

from cardsync.core.clock import SystemClock, system_clock
from cardsync.core.config import settings
from cardsync.services.ebay.base import (
    Listing,
    RateLimitedError,
    SearchError,
    TransientSearchError,
)
from cardsync.services.rate_limiting import (
    BackoffPolicy,
    BudgetTracker,
    RetryExhausted,
    RetryMachine,
    retry_async,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = (
    "exceeded the number of times",
    "service call has exceeded",
)


@dataclass
class VariantSearch:
    """Result of trying query variants in order."""

    listings: list[Listing] = field(default_factory=list)
    matched_query: Optional[str] = None
    attempted: int = 0
    failed: int = 0  # variants that could not be completed

    @property
    def complete(self) -> bool:
        """Every attempted variant got an answer from eBay."""
        return self.failed == 0


def _first(value: Any, default: Any = None) -> Any:
    """eBay's JSON wraps every scalar in a one-element list."""
    if isinstance(value, list):
        return value[0] if value else default
    return value if value is not None else default


def _is_rate_limit_message(text: str) -> bool:
    text = (text or "").lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def _error_message(payload: dict) -> Optional[str]:
    error = _first(_first(payload.get("errorMessage"), {}).get("error"), {})
    message = _first(error.get("message")) if isinstance(error, dict) else None
    return message


def _parse_time(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _parse_item(item: dict) -> Optional[Listing]:
    selling = _first(item.get("sellingStatus"), {})
    price_data = _first(selling.get("convertedCurrentPrice")) or _first(
        selling.get("currentPrice")
    )
    if not isinstance(price_data, dict):
        return None
    try:
        price = Decimal(str(price_data.get("__value__")))
    except (InvalidOperation, TypeError):
        return None
    if price <= 0:
        return None

    condition = _first(item.get("condition"), {})
    listing_info = _first(item.get("listingInfo"), {})

    return Listing(
        title=_first(item.get("title"), ""),
        sale_price=price,
        condition=_first(condition.get("conditionDisplayName"), "Unknown"),
        sold_at=_parse_time(_first(listing_info.get("endTime"))),
        url=_first(item.get("viewItemURL"), ""),
    )


def parse_finding_response(data: Any) -> list[Listing]:
    """
    Turn a findCompletedItems JSON body into listings.

    Raises RateLimitedError when the body carries eBay's quota message and
    SearchError for any other API-level failure.
    """
    if not isinstance(data, dict):
        raise TransientSearchError(f"Unexpected eBay body: {type(data).__name__}")

    top_level_error = _error_message(data)
    if top_level_error:
        if _is_rate_limit_message(top_level_error):
            raise RateLimitedError(top_level_error)
        raise SearchError(top_level_error)

    response = _first(data.get("findCompletedItemsResponse"))
    if not isinstance(response, dict):
        raise TransientSearchError("Unexpected eBay response shape")

    ack = _first(response.get("ack"), "")
    if ack not in ("Success", "Warning"):
        message = _error_message(response) or f"ack={ack}"
        if _is_rate_limit_message(message):
            raise RateLimitedError(message)
        raise SearchError(message)

    result = _first(response.get("searchResult"), {})
    listings = []
    for item in result.get("item", []) or []:
        listing = _parse_item(item)
        if listing is not None:
            listings.append(listing)
    return listings


class EbaySearchClient:
    """Searches eBay sold listings within the shared request budget."""

    def __init__(
        self,
        budget: BudgetTracker,
        app_id: str = None,
        policy: BackoffPolicy = None,
        clock: SystemClock = system_clock,
    ):
        self.budget = budget
        self.app_id = app_id if app_id is not None else settings.EBAY_APP_ID
        self.policy = policy or BackoffPolicy(
            max_retries=settings.EBAY_MAX_RETRIES,
            base_delay=settings.EBAY_RETRY_BASE_DELAY_SEC,
        )
        self.clock = clock
        self.last_machine: Optional[RetryMachine] = None

        if not self.app_id:
            logger.warning("EBAY_APP_ID not set, eBay searches will be rejected")

    async def search(self, query: str, bypass_budget: bool = False) -> list[Listing]:
        """
        Search sold listings for one query.

        Returns [] when retries are exhausted or eBay rejects the query.
        Raises RateLimitedError when the budget or eBay refuses the call.
        """
        try:
            return await self._search_with_retry(query, bypass_budget)
        except RateLimitedError:
            raise
        except (RetryExhausted, SearchError) as exc:
            logger.warning("eBay search failed for '%s': %s", query, exc)
            return []

    async def search_variants(
        self, queries: list[str], bypass_budget: bool = False
    ) -> VariantSearch:
        """
        Try each query in order and stop at the first with listings.

        A failing variant does not stop the others. RateLimitedError does.
        """
        outcome = VariantSearch()

        for query in queries:
            outcome.attempted += 1
            try:
                listings = await self._search_with_retry(query, bypass_budget)
            except RateLimitedError:
                raise
            except (RetryExhausted, SearchError) as exc:
                outcome.failed += 1
                logger.warning("Query variant failed: '%s' (%s)", query, exc)
                continue

            if listings:
                logger.info("eBay: %d listings for '%s'", len(listings), query)
                outcome.listings = listings
                outcome.matched_query = query
                return outcome

            logger.info("eBay: no results for '%s'", query)

        return outcome

    async def _search_with_retry(self, query: str, bypass_budget: bool = False) -> list[Listing]:
        machine = RetryMachine(self.policy)
        self.last_machine = machine
        return await retry_async(
            lambda: self._search_once(query, bypass_budget),
            policy=self.policy,
            retry_on=(TransientSearchError,),
            clock=self.clock,
            name=f"ebay search '{query}'",
            machine=machine,
        )

    async def _search_once(self, query: str, bypass_budget: bool = False) -> list[Listing]:
        if not bypass_budget and not self.budget.can_proceed():
            raise RateLimitedError("Hourly eBay request budget exhausted")

        await self.budget.wait_for_slot(count=not bypass_budget)
        data = await self._fetch(query)
        return parse_finding_response(data)

    def _params(self, query: str) -> dict:
        return {
            "keywords": query,
            "categoryId": settings.EBAY_CATEGORY_ID,
            "itemFilter(0).name": "SoldItemsOnly",
            "itemFilter(0).value": "true",
            "sortOrder": "EndTimeSoonest",
            "paginationInput.entriesPerPage": str(settings.EBAY_ENTRIES_PER_PAGE),
        }

    def _headers(self) -> dict:
        return {
            "X-EBAY-SOA-OPERATION-NAME": "findCompletedItems",
            "X-EBAY-SOA-SERVICE-VERSION": "1.13.0",
            "X-EBAY-SOA-SECURITY-APPNAME": self.app_id,
            "X-EBAY-SOA-RESPONSE-DATA-FORMAT": "JSON",
            "X-EBAY-SOA-GLOBAL-ID": "EBAY-US",
        }

    async def _fetch(self, query: str) -> dict:
        """One HTTP round trip. Classifies failures for the retry loop."""
        timeout = aiohttp.ClientTimeout(total=settings.EBAY_REQUEST_TIMEOUT_SEC)
        try:
            async with aiohttp.ClientSession(headers=self._headers(), timeout=timeout) as session:
                async with session.get(settings.EBAY_FINDING_URL, params=self._params(query)) as resp:
                    body = await resp.text()
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransientSearchError(f"{type(exc).__name__}: {exc}") from exc

        # eBay reports quota exhaustion in the body, often with a 500
        if status == 429 or _is_rate_limit_message(body):
            raise RateLimitedError(f"eBay rate limit (HTTP {status})")
        if status >= 500:
            raise TransientSearchError(f"eBay HTTP {status}")
        if status >= 400:
            raise SearchError(f"eBay HTTP {status}: {body[:200]}")

        try:
            return json.loads(body)
        except ValueError as exc:
            raise TransientSearchError("eBay returned a non-JSON body") from exc
