"""Attempt processing: one answered card in one atomic update.

process_attempt reads every row it touches, runs the pure reward, streak,
cap and leveling calculations, and writes the results inside a single
run_transaction call. If the transaction is retried after a conflict the
whole function body runs again against fresh reads.
"""
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session
from bloomquest.constants import (
    MIN_RAW_XP,
    TOKENS_PER_CORRECT_ANSWER,
    DECK_MASTERY_BONUS_TOKENS,
    DAILY_XP_CAP,
)
from bloomquest.db.models import Card, CardAttempt
from bloomquest.db.transaction import run_transaction
from bloomquest.errors import CardNotFoundError
from bloomquest.logging_config import bind_logger, get_logger
from bloomquest.services.catalog import CardCatalog, SqlCardCatalog, require_deck
from bloomquest.services.leveling import apply_deck_xp, apply_commander_xp, deck_level_up_spillover
from bloomquest.services.mastery import is_deck_mastered
from bloomquest.services.progress import (
    get_or_create_user,
    get_or_create_deck_progress,
    get_or_create_commander,
    get_or_create_xp_stats,
)
from bloomquest.services.rewards import BloomTier, calculate_xp_for_correct_answer
from bloomquest.services.streak_bonus import get_streak_bonus
from bloomquest.services.unlocks import unlock_for_levels
from bloomquest.services.xp_caps import apply_session_cap, apply_daily_cap, roll_xp_windows, apply_xp_boost

logger = get_logger(__name__)


def _empty_breakdown() -> Dict[str, int]:
    return {
        "base": 0,
        "streak_bonus": 0,
        "weak_card_bonus": 0,
        "recency_penalty": 0,
        "raw_xp": 0,
        "session_award": 0,
        "daily_award": 0,
        "vaulted": 0,
        "commander_award": 0,
    }


def _credit_commander(db: Session, user, commander, stats, amount: int, now: datetime) -> Dict:
    """Credit commander XP and apply unlocks and the booster for any level-up."""
    outcome = {
        "commander_leveled_up": False,
        "new_commander_level": None,
        "unlocked_item": None,
        "xp_boost_unlocked": False,
    }

    level_up = apply_commander_xp(commander, amount)
    stats.commander_xp = commander.xp
    if level_up is None:
        return outcome

    outcome["commander_leveled_up"] = True
    outcome["new_commander_level"] = level_up["to_level"]
    outcome["unlocked_item"] = unlock_for_levels(db, user, level_up["levels_gained"], now)

    if level_up["xp_boost_unlocked"]:
        stats.is_xp_boosted = True
        stats.boost_started_at = None
        outcome["xp_boost_unlocked"] = True

    logger.info(
        f"Commander level {level_up['from_level']} -> {level_up['to_level']}",
        extra={"user_id": user.id}
    )
    return outcome


def _deck_attempts_including(db: Session, user_id: str, deck_id: str, new_attempt: CardAttempt) -> list:
    rows = db.query(CardAttempt).filter(
        CardAttempt.user_id == user_id,
        CardAttempt.deck_id == deck_id
    ).all()
    # The new attempt may or may not have been autoflushed into the result
    attempts = [a for a in rows if a is not new_attempt]
    attempts.append(new_attempt)
    return attempts


def process_attempt(
    db: Session,
    user_id: str,
    deck_id: str,
    card_id: str,
    bloom_tier: str,
    was_correct: bool,
    now: Optional[datetime] = None,
    catalog: Optional[CardCatalog] = None
) -> Dict:
    """
    Log an answer and apply every reward, cap, level and mastery rule atomically.

    Wrong answers only log the attempt and reset the deck streak. Correct
    answers:
    1. increment the streak and compute the streak bonus
    2. compute base, weak-card and recency components from prior attempts on the card
    3. combine into raw XP (min 1), doubled while boosted
    4. apply the session cap (overflow at half value) and daily cap (overflow to vault)
    5. credit the deck, leveling it with commander spillover
    6. credit the commander, unlocking frames and arming the booster
    7. award tokens and, on a deck level-up, evaluate deck mastery

    Args:
        db: Database session
        user_id: Player id
        deck_id: Deck of the answered card
        card_id: Answered card
        bloom_tier: Bloom tier the card was presented at
        was_correct: Whether the answer was correct
        now: Attempt time (default: utcnow)
        catalog: Card catalog (default: SqlCardCatalog over `db`)

    Returns:
        Dictionary:
        {
            "deck_mastered": False,
            "awarded_tokens": 5,
            "xp_breakdown": {"base": 5, "streak_bonus": 0, ...},
            "deck_leveled_up": False,
            "commander_leveled_up": False,
            "new_commander_level": None,
            "unlocked_item": None,
            "xp_boost_unlocked": False,
            "deck_progress": {"level": 1, "xp": 5, "xp_to_next": 100, "streak": 1},
            "tokens": 5
        }

    Raises:
        DeckNotFoundError: Deck missing from the catalog
        CardNotFoundError: Card missing or not in the deck
        TransactionConflictError: Concurrent writes won every retry
    """
    if now is None:
        now = datetime.utcnow()
    catalog = catalog or SqlCardCatalog(db)
    tier = BloomTier(bloom_tier).value
    log = bind_logger(logger, user_id=user_id, deck_id=deck_id, card_id=card_id)

    def work(session: Session) -> Dict:
        require_deck(catalog, deck_id)
        card = session.get(Card, card_id)
        if card is None or card.deck_id != deck_id:
            raise CardNotFoundError(deck_id, card_id)

        user = get_or_create_user(session, user_id)
        progress = get_or_create_deck_progress(session, user_id, deck_id)
        commander = get_or_create_commander(session, user_id)
        stats = get_or_create_xp_stats(session, user_id, now)

        prior_attempts = session.query(CardAttempt).filter(
            CardAttempt.user_id == user_id,
            CardAttempt.card_id == card_id
        ).order_by(desc(CardAttempt.timestamp)).all()

        attempt = CardAttempt(
            user_id=user_id,
            deck_id=deck_id,
            card_id=card_id,
            bloom_tier=tier,
            was_correct=was_correct,
            timestamp=now
        )
        session.add(attempt)

        result = {
            "deck_mastered": False,
            "awarded_tokens": 0,
            "xp_breakdown": _empty_breakdown(),
            "deck_leveled_up": False,
            "commander_leveled_up": False,
            "new_commander_level": None,
            "unlocked_item": None,
            "xp_boost_unlocked": False,
        }

        if not was_correct:
            progress.streak = 0
            result["deck_progress"] = _deck_snapshot(progress)
            result["tokens"] = user.tokens
            return result

        breakdown = result["xp_breakdown"]

        progress.streak += 1
        breakdown["streak_bonus"] = get_streak_bonus(progress.streak)
        breakdown.update(calculate_xp_for_correct_answer(tier, prior_attempts, now))

        raw_xp = max(
            MIN_RAW_XP,
            breakdown["base"] + breakdown["weak_card_bonus"]
            + breakdown["recency_penalty"] + breakdown["streak_bonus"]
        )
        raw_xp = apply_xp_boost(raw_xp, stats, now)
        breakdown["raw_xp"] = raw_xp

        roll_xp_windows(stats, now)

        session_award = apply_session_cap(raw_xp, stats.session_xp)
        stats.session_xp += raw_xp
        breakdown["session_award"] = session_award

        split = apply_daily_cap(session_award, stats.daily_xp)
        stats.daily_xp += split["daily_award"]
        stats.bonus_vault += split["vaulted"]
        breakdown["daily_award"] = split["daily_award"]
        breakdown["vaulted"] = split["vaulted"]

        commander_award = split["daily_award"]
        deck_level_up = apply_deck_xp(progress, split["daily_award"])
        if deck_level_up is not None:
            result["deck_leveled_up"] = True
            commander_award += deck_level_up_spillover(deck_level_up["cleared_threshold"])
            log.info(f"Deck level {deck_level_up['from_level']} -> {deck_level_up['to_level']}")
        breakdown["commander_award"] = commander_award

        result.update(_credit_commander(session, user, commander, stats, commander_award, now))

        awarded_tokens = TOKENS_PER_CORRECT_ANSWER

        if deck_level_up is not None and not progress.is_mastered:
            deck_tiers = [c.bloom_tier for c in catalog.fetch_all_cards_in_deck(deck_id)]
            deck_attempts = _deck_attempts_including(session, user_id, deck_id, attempt)
            if is_deck_mastered(deck_tiers, deck_attempts):
                progress.is_mastered = True
                progress.mastered_at = now
                awarded_tokens += DECK_MASTERY_BONUS_TOKENS
                result["deck_mastered"] = True
                log.info("Deck mastered")

        user.tokens += awarded_tokens
        result["awarded_tokens"] = awarded_tokens
        result["deck_progress"] = _deck_snapshot(progress)
        result["tokens"] = user.tokens
        return result

    result = run_transaction(db, work)
    log.debug(
        f"Attempt logged: correct={was_correct}, xp={result['xp_breakdown']['daily_award']}, "
        f"tokens={result['awarded_tokens']}"
    )
    return result


def _deck_snapshot(progress) -> Dict:
    return {
        "level": progress.level,
        "xp": progress.xp,
        "xp_to_next": progress.xp_to_next,
        "streak": progress.streak,
        "is_mastered": bool(progress.is_mastered),
    }


def claim_bonus_vault(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict:
    """
    Move banked XP from the bonus vault onto the commander track.

    Claims only as much as today's remaining daily headroom allows; the rest
    stays banked for another day.

    Returns:
        {"claimed": 120, "bonus_vault": 30, "commander_leveled_up": False, ...}
    """
    if now is None:
        now = datetime.utcnow()

    def work(session: Session) -> Dict:
        user = get_or_create_user(session, user_id)
        commander = get_or_create_commander(session, user_id)
        stats = get_or_create_xp_stats(session, user_id, now)

        roll_xp_windows(stats, now)
        claim = min(stats.bonus_vault, max(0, DAILY_XP_CAP - stats.daily_xp))
        stats.bonus_vault -= claim
        stats.daily_xp += claim

        outcome = {"claimed": claim, "bonus_vault": stats.bonus_vault}
        outcome.update(_credit_commander(session, user, commander, stats, claim, now))
        outcome["commander"] = {
            "level": commander.level,
            "xp": commander.xp,
            "xp_to_next": commander.xp_to_next,
        }
        return outcome

    outcome = run_transaction(db, work)
    logger.info(f"Claimed {outcome['claimed']} XP from bonus vault", extra={"user_id": user_id})
    return outcome
