"""
Catalog tables owned by the collection app.

The pricing engine only reads these rows; they are mapped here so the
catalog store can join cards to their set names.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cardsync.models.base import Base


class CardSet(Base):
    __tablename__ = "card_sets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Card(Base):
    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    set_id: Mapped[int] = mapped_column(ForeignKey("card_sets.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    card_number: Mapped[str] = mapped_column(String(50))
    is_insert: Mapped[bool] = mapped_column(Boolean, default=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class UserCollection(Base):
    __tablename__ = "user_collections"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id"), index=True)
