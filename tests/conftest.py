"""Pytest fixtures for testing."""
import os

# Settings are read at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from bloomquest.db.database import Base
from bloomquest.db.models import Card, Deck

# deck id -> [(card id, tier, starred)]
TEST_DECKS = {
    "bio-101": [
        ("r1", "Remember", True),
        ("r2", "Remember", False),
        ("r3", "Remember", False),
        ("a1", "Apply", False),
        ("a2", "Apply", True),
        ("c1", "Create", False),
    ],
    "solo": [
        ("s1", "Remember", False),
        ("s2", "Remember", False),
    ],
    "empty": [],
}


def seed_test_decks(db):
    for deck_id, cards in TEST_DECKS.items():
        db.add(Deck(id=deck_id, title=deck_id.title()))
        for position, (card_id, tier, starred) in enumerate(cards):
            db.add(Card(
                id=card_id,
                deck_id=deck_id,
                bloom_tier=tier,
                prompt=f"Prompt for {card_id}",
                is_starred=starred,
                position=position
            ))
    db.commit()


@pytest.fixture(scope="function")
def test_db():
    """Create a test database with the sample decks for each test."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()
    seed_test_decks(db)

    yield db

    db.close()


@pytest.fixture
def now():
    """Fixed reference time (naive UTC)."""
    return datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def seed_decks():
    """Function seeding the sample decks into a session."""
    return seed_test_decks
