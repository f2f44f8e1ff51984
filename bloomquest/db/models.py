"""SQLAlchemy models for the Bloom Quest study engine."""
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, Integer, String, Text, DateTime, ForeignKey, JSON,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from bloomquest.constants import (
    BLOOM_TIERS,
    DECK_INITIAL_XP_TO_NEXT,
    COMMANDER_INITIAL_XP_TO_NEXT,
    DEFAULT_AVATAR_FRAME,
    QUEST_MODE,
)
from bloomquest.db.database import Base

_BLOOM_TIER_CHECK = "bloom_tier IN ({})".format(", ".join(f"'{t}'" for t in BLOOM_TIERS))


class User(Base):
    """Player identified by the bq_uid cookie. Holds the token balance."""
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    tokens = Column(Integer, nullable=False, default=0)
    active_avatar_frame = Column(Text, nullable=False, default=DEFAULT_AVATAR_FRAME)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_active_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("tokens >= 0", name="ck_users_tokens_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    deck_progress = relationship("DeckProgress", back_populates="user", cascade="all, delete-orphan")
    commander = relationship("CommanderProgress", back_populates="user", uselist=False, cascade="all, delete-orphan")
    xp_stats = relationship("XpStats", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Deck(Base):
    """Card catalog entry grouping flashcards."""
    __tablename__ = "decks"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    cards = relationship("Card", back_populates="deck", cascade="all, delete-orphan", order_by="Card.position")


class Card(Base):
    """Flashcard. Only the fields the engine needs; rendering lives elsewhere."""
    __tablename__ = "cards"

    id = Column(Text, primary_key=True)
    deck_id = Column(Text, ForeignKey("decks.id"), nullable=False)
    bloom_tier = Column(Text, CheckConstraint(_BLOOM_TIER_CHECK), nullable=False)
    prompt = Column(Text, nullable=False, default="")
    is_starred = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_cards_deck_tier", "deck_id", "bloom_tier"),
    )

    deck = relationship("Deck", back_populates="cards")


class CardAttempt(Base):
    """One answer. Append-only log entry, never updated or deleted."""
    __tablename__ = "card_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    deck_id = Column(Text, ForeignKey("decks.id"), nullable=False)
    card_id = Column(Text, ForeignKey("cards.id"), nullable=False)
    bloom_tier = Column(Text, CheckConstraint(_BLOOM_TIER_CHECK), nullable=False)
    was_correct = Column(Boolean, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_attempts_user_card", "user_id", "card_id", "timestamp"),
        Index("idx_attempts_user_deck", "user_id", "deck_id"),
    )


class DeckProgress(Base):
    """Per-user per-deck level, XP, streak and active study mode."""
    __tablename__ = "deck_progress"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    deck_id = Column(Text, ForeignKey("decks.id"), primary_key=True)
    level = Column(Integer, nullable=False, default=1)
    xp = Column(Integer, nullable=False, default=0)
    xp_to_next = Column(Integer, nullable=False, default=DECK_INITIAL_XP_TO_NEXT)
    streak = Column(Integer, nullable=False, default=0)
    mode = Column(Text, nullable=False, default=QUEST_MODE)
    is_mastered = Column(Boolean, nullable=False, default=False)
    mastered_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="deck_progress")


class CommanderProgress(Base):
    """Account-wide level driving cosmetic unlocks and the XP booster."""
    __tablename__ = "commander_progress"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    level = Column(Integer, nullable=False, default=1)
    xp = Column(Integer, nullable=False, default=0)
    xp_to_next = Column(Integer, nullable=False, default=COMMANDER_INITIAL_XP_TO_NEXT)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="commander")


class XpStats(Base):
    """Session and daily XP tallies, the bonus vault and the booster flag."""
    __tablename__ = "xp_stats"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    session_xp = Column(Integer, nullable=False, default=0)
    session_start = Column(DateTime, nullable=False, default=datetime.utcnow)
    daily_xp = Column(Integer, nullable=False, default=0)
    last_daily_reset = Column(DateTime, nullable=False, default=datetime.utcnow)
    bonus_vault = Column(Integer, nullable=False, default=0)
    is_xp_boosted = Column(Boolean, nullable=False, default=False)
    boost_started_at = Column(DateTime, nullable=True)
    commander_xp = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="xp_stats")


class PowerUpPurchase(Base):
    """How often a power-up type was bought in a deck. Drives escalating prices."""
    __tablename__ = "power_up_purchases"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    deck_id = Column(Text, ForeignKey("decks.id"), primary_key=True)
    power_up_type = Column(Text, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class InventoryItem(Base):
    """Durable count of shop items a user owns."""
    __tablename__ = "inventory_items"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    item_id = Column(Text, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    last_purchased = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class UnlockedCustomization(Base):
    """Cosmetic item a user has unlocked. Append-only."""
    __tablename__ = "unlocked_customizations"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    category = Column(Text, primary_key=True)
    item_id = Column(Text, primary_key=True)
    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class StudySession(Base):
    """Persisted cursor of a quest or remix session.

    `orders` maps a Bloom tier (quest) or "remix" to the realized card order;
    quest tiers are filled lazily as the cursor reaches them. `generation` counts
    replacements and seeds remix subsets.
    """
    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    deck_id = Column(Text, ForeignKey("decks.id"), nullable=False)
    mode = Column(String(16), CheckConstraint("mode IN ('quest', 'remix')"), nullable=False)
    current_tier = Column(Text, nullable=True)
    cursor = Column(Integer, nullable=False, default=0)
    orders = Column(JSON, nullable=False, default=dict)
    completed_tiers = Column(JSON, nullable=False, default=list)
    total_cards = Column(Integer, nullable=False, default=0)
    is_complete = Column(Boolean, nullable=False, default=False)
    generation = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "deck_id", "mode", name="uq_study_session"),
    )
