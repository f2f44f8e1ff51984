"""Card catalog access.

The engine only needs card ids, their deck and Bloom tier. CardCatalog is the
seam other catalog backends plug into; SqlCardCatalog reads the local tables.
"""
from typing import List, Optional, Protocol
from sqlalchemy.orm import Session
from bloomquest.db.models import Card, Deck
from bloomquest.errors import DeckNotFoundError


class CardCatalog(Protocol):
    def get_deck(self, deck_id: str) -> Optional[Deck]: ...

    def fetch_cards_by_bloom_tier(self, deck_id: str, tier: str) -> List[Card]: ...

    def fetch_all_cards_in_deck(self, deck_id: str) -> List[Card]: ...


class SqlCardCatalog:
    """CardCatalog backed by the decks and cards tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_deck(self, deck_id: str) -> Optional[Deck]:
        return self.db.query(Deck).filter(Deck.id == deck_id).first()

    def fetch_cards_by_bloom_tier(self, deck_id: str, tier: str) -> List[Card]:
        return self.db.query(Card).filter(
            Card.deck_id == deck_id,
            Card.bloom_tier == tier
        ).order_by(Card.position, Card.id).all()

    def fetch_all_cards_in_deck(self, deck_id: str) -> List[Card]:
        return self.db.query(Card).filter(
            Card.deck_id == deck_id
        ).order_by(Card.position, Card.id).all()


def require_deck(catalog: CardCatalog, deck_id: str) -> Deck:
    """
    Fetch a deck or fail the operation.

    Raises:
        DeckNotFoundError: The catalog has no such deck
    """
    deck = catalog.get_deck(deck_id)
    if deck is None:
        raise DeckNotFoundError(deck_id)
    return deck
