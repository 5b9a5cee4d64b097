"""Run a single pricing cycle (retry failed, trending, stale sweep, drain)."""

import argparse
import asyncio
import logging

from cardsync.services.scheduler import get_background_pricing, get_pricing_queue

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main(user_id: int = None):
    """Execute one pricing cycle, optionally prioritising a user's collection."""
    if user_id is not None:
        await get_pricing_queue().enqueue_user_owned(user_id)

    logger.info("Starting single pricing cycle...")
    result = await get_background_pricing().run_cycle()

    logger.info("=" * 60)
    logger.info("PRICING CYCLE COMPLETE")
    logger.info("=" * 60)
    for key, value in result.items():
        logger.info("  - %s: %s", key, value)

    status = get_pricing_queue().pricing.get_status()
    logger.info(
        "Budget: %d/%d requests used, window resets at %s",
        status["request_count"],
        status["budget_max"],
        status["window_reset_at"].isoformat(),
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", type=int, help="queue this user's cards first")
    args = parser.parse_args()
    asyncio.run(main(args.user_id))
