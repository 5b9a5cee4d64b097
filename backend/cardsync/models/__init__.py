from cardsync.models.base import Base
from cardsync.models.card import Card, CardSet, UserCollection
from cardsync.models.price_cache import CardPriceCache

__all__ = ["Base", "Card", "CardSet", "UserCollection", "CardPriceCache"]
