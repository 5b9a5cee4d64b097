"""
Priority queue of card pricing jobs.

Jobs are drained one at a time through the pricing service, against the same
hourly budget as every other eBay call. Lower priority values go first; ties
keep enqueue order. A card is queued at most once while pending.

Job states:
    PENDING -> FETCHING -> CACHED | FAILED
    FAILED  -> PENDING   (only through retry_failed)
"""

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterable, Optional

from cardsync.core.clock import SystemClock, system_clock
from cardsync.core.config import settings
from cardsync.services.pricing import CatalogStore, PricingService

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    USER_OWNED = 1
    TRENDING = 2
    GENERAL = 3


class JobState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    CACHED = "cached"
    FAILED = "failed"


@dataclass
class DrainReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    deferred: int = 0  # left in the queue when the budget ran out
    order: list[int] = field(default_factory=list)


class PricingQueue:
    """Deduplicating priority queue drained against the shared budget."""

    def __init__(
        self,
        pricing: PricingService,
        catalog: CatalogStore,
        clock: SystemClock = system_clock,
        inter_job_delay: float = settings.PRICING_INTER_JOB_DELAY_SEC,
    ):
        self.pricing = pricing
        self.catalog = catalog
        self.clock = clock
        self.inter_job_delay = inter_job_delay

        self._heap: list[tuple[int, int, int]] = []  # (priority, seq, card_id)
        self._pending: set[int] = set()
        self._seq = itertools.count()
        self._states: dict[int, JobState] = {}
        self._drain_lock = asyncio.Lock()

        # Statistics
        self.total_processed = 0
        self.total_failed = 0

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def enqueue(self, card_id: int, priority: int = Priority.GENERAL) -> bool:
        """Queue a card. Returns False if it is already pending."""
        if card_id in self._pending:
            return False
        heapq.heappush(self._heap, (int(priority), next(self._seq), card_id))
        self._pending.add(card_id)
        self._states[card_id] = JobState.PENDING
        return True

    def enqueue_batch(self, card_ids: Iterable[int], priority: int = Priority.GENERAL) -> int:
        """Queue several cards; returns how many were newly queued."""
        return sum(1 for card_id in card_ids if self.enqueue(card_id, priority))

    async def enqueue_user_owned(self, user_id: int) -> int:
        """Queue every card in a user's collection at the highest priority."""
        card_ids = await self.catalog.owned_card_ids(user_id)
        added = self.enqueue_batch(card_ids, Priority.USER_OWNED)
        logger.info("Queued %d/%d cards owned by user %d", added, len(card_ids), user_id)
        return added

    async def enqueue_trending(self, limit: int = settings.PRICING_TRENDING_LIMIT) -> int:
        """Queue the cards that appear in the most collections."""
        card_ids = await self.catalog.popular_card_ids(limit)
        added = self.enqueue_batch(card_ids, Priority.TRENDING)
        logger.info("Queued %d trending cards", added)
        return added

    async def sweep_stale(self, limit: int = settings.PRICING_MAX_CARDS_PER_SWEEP) -> int:
        """Queue stale cache entries, then never-priced cards, at low priority."""
        card_ids = await self.pricing.cache.stale_card_ids(limit)
        if len(card_ids) < limit:
            card_ids += await self.catalog.unpriced_card_ids(limit - len(card_ids))
        added = self.enqueue_batch(card_ids, Priority.GENERAL)
        logger.info("Stale sweep: %d cards found, %d newly queued", len(card_ids), added)
        return added

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------

    def _pop(self) -> Optional[tuple[int, int]]:
        if not self._heap:
            return None
        priority, _, card_id = heapq.heappop(self._heap)
        self._pending.discard(card_id)
        return priority, card_id

    def _defer_remaining(self) -> int:
        """Budget is gone: move every queued card into the failed set."""
        deferred = 0
        while (job := self._pop()) is not None:
            _, card_id = job
            self.pricing.mark_failed(card_id)
            self._states[card_id] = JobState.FAILED
            deferred += 1
        return deferred

    async def drain(self) -> DrainReport:
        """Process queued jobs until the queue is empty or the budget runs out."""
        report = DrainReport()

        async with self._drain_lock:
            while self._heap:
                if not self.pricing.budget.can_proceed():
                    report.deferred = self._defer_remaining()
                    logger.info(
                        "Budget exhausted after %d jobs; %d cards moved to retry set",
                        report.processed,
                        report.deferred,
                    )
                    break

                priority, card_id = self._pop()
                self._states[card_id] = JobState.FETCHING
                logger.info("Processing pricing for card %d (priority %d)", card_id, priority)

                result = await self.pricing.sync_card(card_id)
                if result.deferred:
                    self._states[card_id] = JobState.FAILED
                    report.deferred = 1 + self._defer_remaining()
                    logger.info(
                        "Budget ran out before card %d was fetched; %d cards moved to retry set",
                        card_id,
                        report.deferred,
                    )
                    break

                report.processed += 1
                report.order.append(card_id)
                if result.succeeded:
                    report.succeeded += 1
                    self._states[card_id] = JobState.CACHED
                else:
                    report.failed += 1
                    self._states[card_id] = JobState.FAILED

                if self._heap:
                    await self.clock.sleep(self.inter_job_delay)

        self.total_processed += report.processed
        self.total_failed += report.failed + report.deferred
        logger.info(
            "Drain complete: %d processed (%d ok, %d failed), %d deferred",
            report.processed,
            report.succeeded,
            report.failed,
            report.deferred,
        )
        return report

    async def retry_failed(self) -> DrainReport:
        """Re-queue everything in the failed set and drain."""
        card_ids = self.pricing.take_failed()
        if card_ids:
            logger.info("Retrying %d failed pricing requests", len(card_ids))
        self.enqueue_batch(card_ids, Priority.GENERAL)
        return await self.drain()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def job_state(self, card_id: int) -> Optional[JobState]:
        return self._states.get(card_id)

    def pending_card_ids(self) -> list[int]:
        """Pending cards in the order drain would serve them."""
        return [card_id for _, _, card_id in sorted(self._heap)]

    def __len__(self) -> int:
        return len(self._heap)

    def status(self) -> dict:
        return {
            "queue_length": len(self._heap),
            "is_draining": self._drain_lock.locked(),
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
        }
