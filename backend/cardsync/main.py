import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from cardsync.api.routes.pricing import router as pricing_router
from cardsync.core.config import settings
from cardsync.core.database import async_session
from cardsync.services.scheduler import start_background_pricing, stop_background_pricing

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: background refresh of trending and stale card prices
    if settings.PRICING_BACKGROUND_ENABLED:
        await start_background_pricing()
    else:
        logger.info("Background pricing disabled")
    yield
    if settings.PRICING_BACKGROUND_ENABLED:
        await stop_background_pricing()


app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing_router, prefix="/api/v1")


@app.get("/health")
async def health():
    try:
        async with async_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e}"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "db": db_status,
    }


@app.post("/migrate")
async def run_migrations():
    """Apply Alembic migrations (creates card_price_cache)."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg_path = os.path.join(os.getcwd(), "alembic.ini")
    try:
        # env.py drives its own event loop, so it must run off this one
        await asyncio.to_thread(command.upgrade, Config(alembic_cfg_path), "head")
    except Exception as e:
        logger.exception("Migration failed")
        return {"success": False, "error": str(e)}

    return {"success": True, "alembic_ini": alembic_cfg_path}
