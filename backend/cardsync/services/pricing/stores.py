"""
Read/write contracts with the catalog database.

The pricing engine talks to two stores:
- CatalogStore: card details and the card-id lists the scheduler needs
- PriceCacheStore: the card_price_cache rows

The Sql* classes implement them on the async SQLAlchemy session factory.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardsync.models.card import Card, CardSet, UserCollection
from cardsync.models.price_cache import CardPriceCache
from cardsync.services.pricing.types import CatalogItem, PriceCacheEntry

logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    async def get_item(self, card_id: int) -> Optional[CatalogItem]: ...

    async def unpriced_card_ids(self, limit: int) -> list[int]: ...

    async def owned_card_ids(self, user_id: int) -> list[int]: ...

    async def popular_card_ids(self, limit: int) -> list[int]: ...


class PriceCacheStore(Protocol):
    async def get_entry(self, card_id: int) -> Optional[PriceCacheEntry]: ...

    async def upsert_entry(
        self,
        card_id: int,
        avg_price: Decimal,
        recent_sales: list[str],
        sales_count: int,
        last_fetched: datetime,
    ) -> PriceCacheEntry: ...

    async def stale_card_ids(self, fetched_before: datetime, limit: int) -> list[int]: ...


def _to_entry(row: CardPriceCache) -> PriceCacheEntry:
    return PriceCacheEntry(
        card_id=row.card_id,
        avg_price=row.avg_price if row.avg_price is not None else Decimal("0.00"),
        sales_count=row.sales_count if row.sales_count is not None else 0,
        recent_sales=list(row.recent_sales or []),
        last_fetched=row.last_fetched,
    )


def build_upsert(
    card_id: int,
    avg_price: Decimal,
    recent_sales: list[str],
    sales_count: int,
    last_fetched: datetime,
):
    """INSERT ... ON CONFLICT (card_id) DO UPDATE for one cache row."""
    values = {
        "avg_price": avg_price,
        "recent_sales": recent_sales,
        "sales_count": sales_count,
        "last_fetched": last_fetched,
    }
    stmt = pg_insert(CardPriceCache).values(card_id=card_id, **values)
    return stmt.on_conflict_do_update(
        index_elements=[CardPriceCache.card_id],
        set_=values,
    ).returning(CardPriceCache)


class SqlCatalogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_item(self, card_id: int) -> Optional[CatalogItem]:
        stmt = (
            select(
                Card.id,
                Card.name,
                Card.card_number,
                Card.is_insert,
                Card.description,
                CardSet.name.label("set_name"),
            )
            .join(CardSet, Card.set_id == CardSet.id)
            .where(Card.id == card_id)
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).first()

        if row is None:
            return None
        return CatalogItem(
            id=row.id,
            name=row.name,
            card_number=row.card_number or "",
            set_name=row.set_name or "",
            is_insert=bool(row.is_insert),
            description=row.description,
        )

    async def unpriced_card_ids(self, limit: int) -> list[int]:
        stmt = (
            select(Card.id)
            .outerjoin(CardPriceCache, CardPriceCache.card_id == Card.id)
            .where(CardPriceCache.card_id.is_(None))
            .order_by(Card.id)
            .limit(limit)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def owned_card_ids(self, user_id: int) -> list[int]:
        stmt = (
            select(UserCollection.card_id)
            .where(UserCollection.user_id == user_id)
            .distinct()
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def popular_card_ids(self, limit: int) -> list[int]:
        """Cards that appear in the most collections."""
        stmt = (
            select(UserCollection.card_id)
            .group_by(UserCollection.card_id)
            .order_by(func.count(UserCollection.id).desc(), UserCollection.card_id)
            .limit(limit)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())


class SqlPriceCacheStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_entry(self, card_id: int) -> Optional[PriceCacheEntry]:
        stmt = select(CardPriceCache).where(CardPriceCache.card_id == card_id).limit(1)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        return _to_entry(row) if row is not None else None

    async def upsert_entry(
        self,
        card_id: int,
        avg_price: Decimal,
        recent_sales: list[str],
        sales_count: int,
        last_fetched: datetime,
    ) -> PriceCacheEntry:
        stmt = build_upsert(card_id, avg_price, recent_sales, sales_count, last_fetched)
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).scalar_one()
            entry = _to_entry(row)
            await session.commit()
        return entry

    async def stale_card_ids(self, fetched_before: datetime, limit: int) -> list[int]:
        stmt = (
            select(CardPriceCache.card_id)
            .where(CardPriceCache.last_fetched < fetched_before)
            .order_by(CardPriceCache.last_fetched)
            .limit(limit)
        )
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())
