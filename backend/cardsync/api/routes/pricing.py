"""
Card pricing API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException

from cardsync.schemas.pricing import (
    BatchPriceRequest,
    BatchPriceResponse,
    DrainResponse,
    EnqueueRequest,
    EnqueueResponse,
    PriceOut,
    PricingStatus,
    SweepResponse,
)
from cardsync.services.pricing import PricingService, get_pricing_service
from cardsync.services.scheduler import DrainReport, PricingQueue, get_pricing_queue

router = APIRouter(tags=["pricing"])


def _drain_response(report: DrainReport) -> DrainResponse:
    return DrainResponse(
        processed=report.processed,
        succeeded=report.succeeded,
        failed=report.failed,
        deferred=report.deferred,
    )


@router.get("/card-pricing/{card_id}", response_model=PriceOut)
async def get_card_pricing(
    card_id: int,
    pricing: PricingService = Depends(get_pricing_service),
):
    """Cached price, refreshed when stale and the hourly budget allows."""
    quote = await pricing.get_price(card_id)
    if quote is None:
        raise HTTPException(status_code=404, detail="No pricing data found")
    return PriceOut.from_quote(card_id, quote)


@router.post("/card-pricing/batch", response_model=BatchPriceResponse)
async def get_batch_pricing(
    body: BatchPriceRequest,
    pricing: PricingService = Depends(get_pricing_service),
):
    """Prices for several cards. Unknown or unpriced cards map to null."""
    prices: dict[int, PriceOut | None] = {}
    for card_id in dict.fromkeys(body.card_ids):
        quote = await pricing.get_price(card_id)
        prices[card_id] = PriceOut.from_quote(card_id, quote) if quote else None
    return BatchPriceResponse(prices=prices)


@router.post("/card-pricing/{card_id}/refresh", response_model=PriceOut)
async def refresh_card_pricing(
    card_id: int,
    pricing: PricingService = Depends(get_pricing_service),
):
    """
    User-triggered refresh. Skips the staleness check and does not count
    against the hourly background budget.
    """
    quote = await pricing.force_refresh(card_id)
    if quote is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return PriceOut.from_quote(card_id, quote)


@router.post("/pricing/queue", response_model=EnqueueResponse, status_code=202)
async def enqueue_pricing(
    body: EnqueueRequest,
    queue: PricingQueue = Depends(get_pricing_queue),
):
    queued = queue.enqueue_batch(body.card_ids, body.priority)
    return EnqueueResponse(queued=queued, queue_length=len(queue))


@router.post("/pricing/drain", response_model=DrainResponse)
async def drain_pricing_queue(queue: PricingQueue = Depends(get_pricing_queue)):
    return _drain_response(await queue.drain())


@router.post("/pricing/retry-failed", response_model=DrainResponse)
async def retry_failed_pricing(queue: PricingQueue = Depends(get_pricing_queue)):
    return _drain_response(await queue.retry_failed())


@router.post("/pricing/sweep", response_model=SweepResponse, status_code=202)
async def sweep_stale_pricing(queue: PricingQueue = Depends(get_pricing_queue)):
    """Queue stale and never-priced cards for the next drain."""
    queued = await queue.sweep_stale()
    return SweepResponse(queued=queued, queue_length=len(queue))


@router.get("/pricing/status", response_model=PricingStatus)
async def pricing_status(
    pricing: PricingService = Depends(get_pricing_service),
    queue: PricingQueue = Depends(get_pricing_queue),
):
    status = pricing.get_status()
    queue_status = queue.status()
    return PricingStatus(
        **status,
        queue_length=queue_status["queue_length"],
        is_draining=queue_status["is_draining"],
    )
