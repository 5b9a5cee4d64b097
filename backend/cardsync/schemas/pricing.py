from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from cardsync.services.pricing import PriceQuote


class PriceOut(BaseModel):
    """
    Card valuation.

    status:
      ok        average of recent relevant sales
      no_sales  eBay answered but nothing relevant sold (price 0.00)
      error     the last fetch failed; price is null
    """

    card_id: int
    price: Decimal | None
    sales_count: int
    last_fetched_at: datetime
    status: Literal["ok", "no_sales", "error"]

    @classmethod
    def from_quote(cls, card_id: int, quote: PriceQuote) -> "PriceOut":
        if quote.is_error:
            status, price = "error", None
        elif quote.has_sales:
            status, price = "ok", quote.price
        else:
            status, price = "no_sales", quote.price
        return cls(
            card_id=card_id,
            price=price,
            sales_count=quote.sales_count,
            last_fetched_at=quote.last_fetched_at,
            status=status,
        )


class BatchPriceRequest(BaseModel):
    card_ids: list[int] = Field(min_length=1, max_length=100)


class BatchPriceResponse(BaseModel):
    prices: dict[int, PriceOut | None]


class EnqueueRequest(BaseModel):
    card_ids: list[int] = Field(min_length=1)
    priority: int = Field(3, ge=1, le=10)


class EnqueueResponse(BaseModel):
    queued: int
    queue_length: int


class DrainResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    deferred: int


class SweepResponse(BaseModel):
    queued: int
    queue_length: int


class PricingStatus(BaseModel):
    request_count: int
    budget_max: int
    pending_failed_count: int
    can_proceed: bool
    window_reset_at: datetime
    queue_length: int
    is_draining: bool
