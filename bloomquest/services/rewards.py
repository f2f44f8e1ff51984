"""XP reward calculation for a single correct answer."""
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, Optional
from bloomquest.constants import (
    BLOOM_BASE_XP,
    WEAK_CARD_ACCURACY_THRESHOLD,
    WEAK_CARD_MAX_BONUS_RATIO,
    RECENCY_WINDOW_HOURS,
    RECENCY_PENALTY_RATIO,
)


class BloomTier(str, Enum):
    """Bloom taxonomy tier of a flashcard, lowest first."""
    REMEMBER = "Remember"
    UNDERSTAND = "Understand"
    APPLY = "Apply"
    ANALYZE = "Analyze"
    EVALUATE = "Evaluate"
    CREATE = "Create"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, not 2)."""
    return math.floor(value + 0.5)


def get_base_xp(tier: str) -> int:
    """
    Look up the base XP of a Bloom tier.

    Args:
        tier: Bloom tier name or BloomTier member

    Returns:
        Base XP (5 for Remember up to 20 for Create)

    Raises:
        ValueError: Unknown tier
    """
    try:
        return BLOOM_BASE_XP[BloomTier(tier).value]
    except ValueError:
        raise ValueError(f"Unknown bloom tier: {tier}")


def calculate_weak_card_bonus(base: int, prior_attempts: Iterable) -> int:
    """
    Bonus for answering a card the user usually gets wrong.

    Tapers linearly from 50% of base at 0% prior accuracy to nothing at 50%.

    Args:
        base: Base XP of the card's tier
        prior_attempts: Earlier attempts on this card (need `was_correct`)

    Returns:
        Non-negative bonus XP
    """
    attempts = list(prior_attempts)
    if not attempts:
        return 0

    correct = sum(1 for a in attempts if a.was_correct)
    accuracy = correct / len(attempts)

    if accuracy >= WEAK_CARD_ACCURACY_THRESHOLD:
        return 0

    bonus_ratio = (1 - accuracy / WEAK_CARD_ACCURACY_THRESHOLD) * WEAK_CARD_MAX_BONUS_RATIO
    return max(0, round_half_up(base * bonus_ratio))


def calculate_recency_penalty(base: int, prior_attempts: Iterable, now: datetime) -> int:
    """
    Penalty for re-answering a card that was answered correctly in the last 24 hours.

    Args:
        base: Base XP of the card's tier
        prior_attempts: Earlier attempts on this card (need `was_correct`, `timestamp`)
        now: Reference time (naive UTC)

    Returns:
        Zero or a negative XP adjustment
    """
    window_start = now - timedelta(hours=RECENCY_WINDOW_HOURS)
    answered_recently = any(
        a.was_correct and a.timestamp > window_start
        for a in prior_attempts
    )
    if answered_recently:
        return -round_half_up(base * RECENCY_PENALTY_RATIO)
    return 0


def calculate_xp_for_correct_answer(
    tier: str,
    prior_attempts: Iterable,
    now: Optional[datetime] = None
) -> Dict[str, int]:
    """
    Calculate the XP components of a correct answer.

    Pure function: no storage access, deterministic for a given `now`.

    Args:
        tier: Bloom tier of the answered card
        prior_attempts: Earlier attempts on this exact card, any order
        now: Reference time for the recency window (default: utcnow)

    Returns:
        Dictionary of components:
        {
            "base": 12,
            "weak_card_bonus": 3,
            "recency_penalty": 0
        }
    """
    if now is None:
        now = datetime.utcnow()

    attempts = list(prior_attempts)
    base = get_base_xp(tier)

    return {
        "base": base,
        "weak_card_bonus": calculate_weak_card_bonus(base, attempts),
        "recency_penalty": calculate_recency_penalty(base, attempts, now),
    }
