from datetime import datetime
from decimal import Decimal

from sqlalchemy import ARRAY, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from cardsync.models.base import Base


class CardPriceCache(Base):
    """
    Latest eBay valuation per card. One row per card_id, upserted on every
    fetch attempt.

    sales_count doubles as the outcome marker:
      0   the fetch succeeded and found no matching sales (avg_price 0.00)
      -1  the fetch could not be completed (avg_price holds the error sentinel)
    """

    __tablename__ = "card_price_cache"

    id: Mapped[int] = mapped_column(primary_key=True)
    card_id: Mapped[int] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"), unique=True, index=True
    )
    avg_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    recent_sales: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    sales_count: Mapped[int] = mapped_column(Integer, default=0)
    last_fetched: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default="now()"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default="now()"
    )
