"""Database initialization and demo deck seeding."""
import logging
import os
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session
from bloomquest.config import settings
from bloomquest.db.database import engine, SessionLocal, Base
from bloomquest.db.models import Card, Deck

logger = logging.getLogger(__name__)

DEMO_DECK = {
    "id": "demo-cell-biology",
    "title": "Cell Biology Basics",
    "description": "Sample deck covering every Bloom tier.",
}

# (card id, Bloom tier, prompt, starred)
DEMO_CARDS = [
    ("demo-cell-01", "Remember", "What organelle produces most of the cell's ATP?", True),
    ("demo-cell-02", "Remember", "Name the semi-permeable boundary of the cell.", False),
    ("demo-cell-03", "Remember", "Where is DNA stored in a eukaryotic cell?", False),
    ("demo-cell-04", "Understand", "Explain why the membrane is called a fluid mosaic.", False),
    ("demo-cell-05", "Understand", "Describe the role of ribosomes in protein synthesis.", True),
    ("demo-cell-06", "Apply", "Predict what happens to a red blood cell in pure water.", False),
    ("demo-cell-07", "Apply", "Use diffusion to explain oxygen uptake in the lungs.", False),
    ("demo-cell-08", "Analyze", "Compare active transport with facilitated diffusion.", False),
    ("demo-cell-09", "Analyze", "Why do muscle cells contain many mitochondria?", True),
    ("demo-cell-10", "Evaluate", "Assess the claim that viruses are living cells.", False),
    ("demo-cell-11", "Create", "Design an experiment to measure membrane permeability.", False),
    ("demo-cell-12", "Create", "Propose a model cell optimized for secreting hormones.", False),
]


def ensure_sqlite_directory(url: str) -> None:
    """Create the directory holding a file-based SQLite database."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite") or not parsed.database or parsed.database == ":memory:":
        return
    directory = os.path.dirname(parsed.database)
    if directory and not os.path.isdir(directory):
        logger.info(f"Creating database directory {directory}")
        os.makedirs(directory, exist_ok=True)


def seed_demo_deck(db: Session) -> None:
    """Add the sample deck when the catalog is empty."""
    if db.query(Deck).count() > 0:
        logger.info("Card catalog already populated, skipping demo seed.")
        return

    logger.info("Seeding demo deck...")
    db.add(Deck(**DEMO_DECK))
    for position, (card_id, tier, prompt, starred) in enumerate(DEMO_CARDS):
        db.add(Card(
            id=card_id,
            deck_id=DEMO_DECK["id"],
            bloom_tier=tier,
            prompt=prompt,
            is_starred=starred,
            position=position
        ))
    db.commit()
    logger.info(f"Seeded demo deck with {len(DEMO_CARDS)} cards.")


def init_db() -> None:
    """
    Initialize database: create tables and optionally seed the demo deck.

    Safe to call multiple times - all operations are idempotent.
    """
    logger.info("Initializing database...")
    ensure_sqlite_directory(settings.DATABASE_URL)

    # Create all tables (idempotent - does nothing if tables exist)
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    if not settings.should_seed_demo_data:
        return

    db = SessionLocal()
    try:
        seed_demo_deck(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding demo deck: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    print("Database initialization complete.")
