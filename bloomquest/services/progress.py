"""Loading progress rows with defaults, and progress summaries.

Missing rows are not errors: a user who has never studied a deck starts at
level 1 with no XP. The get_or_create helpers add default rows to the session
without committing so they join the caller's transaction.
"""
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session
from bloomquest.constants import (
    DECK_INITIAL_XP_TO_NEXT,
    COMMANDER_INITIAL_XP_TO_NEXT,
    DEFAULT_AVATAR_FRAME,
    QUEST_MODE,
)
from bloomquest.db.models import User, Deck, DeckProgress, CommanderProgress, XpStats, CardAttempt, Card
from bloomquest.services.leveling import get_level_progress
from bloomquest.services.mastery import summarize_deck_mastery


def get_or_create_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, tokens=0, active_avatar_frame=DEFAULT_AVATAR_FRAME)
        db.add(user)
    return user


def get_or_create_deck_progress(db: Session, user_id: str, deck_id: str) -> DeckProgress:
    progress = db.get(DeckProgress, (user_id, deck_id))
    if progress is None:
        progress = DeckProgress(
            user_id=user_id,
            deck_id=deck_id,
            level=1,
            xp=0,
            xp_to_next=DECK_INITIAL_XP_TO_NEXT,
            streak=0,
            mode=QUEST_MODE,
            is_mastered=False,
        )
        db.add(progress)
    return progress


def get_or_create_commander(db: Session, user_id: str) -> CommanderProgress:
    commander = db.get(CommanderProgress, user_id)
    if commander is None:
        commander = CommanderProgress(
            user_id=user_id,
            level=1,
            xp=0,
            xp_to_next=COMMANDER_INITIAL_XP_TO_NEXT,
        )
        db.add(commander)
    return commander


def get_or_create_xp_stats(db: Session, user_id: str, now: Optional[datetime] = None) -> XpStats:
    stats = db.get(XpStats, user_id)
    if stats is None:
        now = now or datetime.utcnow()
        stats = XpStats(
            user_id=user_id,
            session_xp=0,
            session_start=now,
            daily_xp=0,
            last_daily_reset=now,
            bonus_vault=0,
            is_xp_boosted=False,
            commander_xp=0,
        )
        db.add(stats)
    return stats


def get_progress_summary(db: Session, user_id: str) -> Dict:
    """
    Commander, per-deck and XP window state for a user.

    Read-only; missing rows are reported with their defaults.

    Returns:
        {
            "tokens": 45,
            "commander": {"level": 2, "xp": 30, "xp_to_next": 1000, "progress_percentage": 3.0},
            "xp_stats": {...},
            "decks": [{"deck_id": ..., "title": ..., "level": ..., "mastery": [...]}, ...]
        }
    """
    user = db.get(User, user_id)
    commander = db.get(CommanderProgress, user_id)
    stats = db.get(XpStats, user_id)

    if commander is not None:
        commander_summary = get_level_progress(commander.level, commander.xp, commander.xp_to_next)
    else:
        commander_summary = get_level_progress(1, 0, COMMANDER_INITIAL_XP_TO_NEXT)

    xp_stats = {
        "session_xp": stats.session_xp if stats else 0,
        "daily_xp": stats.daily_xp if stats else 0,
        "bonus_vault": stats.bonus_vault if stats else 0,
        "is_xp_boosted": bool(stats.is_xp_boosted) if stats else False,
        "session_start": stats.session_start.isoformat() if stats else None,
    }

    deck_rows = db.query(DeckProgress, Deck).join(
        Deck, DeckProgress.deck_id == Deck.id
    ).filter(
        DeckProgress.user_id == user_id
    ).order_by(Deck.title).all()

    decks = []
    for progress, deck in deck_rows:
        tiers = [row[0] for row in db.query(Card.bloom_tier).filter(Card.deck_id == deck.id).all()]
        attempts = db.query(CardAttempt).filter(
            CardAttempt.user_id == user_id,
            CardAttempt.deck_id == deck.id
        ).all()
        decks.append({
            "deck_id": deck.id,
            "title": deck.title,
            "total_cards": len(tiers),
            "is_mastered": progress.is_mastered,
            "streak": progress.streak,
            "mode": progress.mode,
            **get_level_progress(progress.level, progress.xp, progress.xp_to_next),
            "mastery": summarize_deck_mastery(tiers, attempts),
        })

    return {
        "user_id": user_id,
        "tokens": user.tokens if user else 0,
        "active_avatar_frame": user.active_avatar_frame if user else DEFAULT_AVATAR_FRAME,
        "commander": commander_summary,
        "xp_stats": xp_stats,
        "decks": decks,
    }
