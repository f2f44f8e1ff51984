"""Bloom-tier accuracy and deck mastery evaluation."""
from enum import Enum
from typing import Dict, Iterable, List
from bloomquest.constants import BLOOM_TIERS, MASTERY_THRESHOLD, PRACTICE_WEAKNESS_THRESHOLD


class MasteryState(str, Enum):
    """Mastery state of one Bloom tier within a deck."""
    UNSEEN = "unseen"
    LEARNING = "learning"
    MASTERED = "mastered"


def calculate_tier_accuracy(attempts: Iterable) -> Dict[str, Dict[str, int]]:
    """
    Tally correct and total attempts per Bloom tier.

    Args:
        attempts: Attempts with `bloom_tier` and `was_correct`

    Returns:
        {"Remember": {"correct": 8, "total": 10}, ...} for tiers with attempts
    """
    tally: Dict[str, Dict[str, int]] = {}
    for attempt in attempts:
        entry = tally.setdefault(attempt.bloom_tier, {"correct": 0, "total": 0})
        entry["total"] += 1
        if attempt.was_correct:
            entry["correct"] += 1
    return tally


def get_tier_mastery_state(correct: int, total: int) -> MasteryState:
    """
    Determine mastery state of a tier.

    States:
    - UNSEEN: no attempts
    - MASTERED: accuracy >= 0.8
    - LEARNING: anything else

    Args:
        correct: Correct attempts in the tier
        total: All attempts in the tier

    Returns:
        MasteryState enum value
    """
    if total == 0:
        return MasteryState.UNSEEN
    if correct / total >= MASTERY_THRESHOLD:
        return MasteryState.MASTERED
    return MasteryState.LEARNING


def is_deck_mastered(deck_tiers: Iterable[str], attempts: Iterable) -> bool:
    """
    Check whether every tier present in a deck has reached mastery accuracy.

    Attempts on tiers the deck no longer contains are ignored. A deck with no
    cards is never mastered.

    Args:
        deck_tiers: Bloom tiers of the deck's cards (duplicates allowed)
        attempts: All of the user's attempts in the deck

    Returns:
        True when each required tier has accuracy >= 0.8
    """
    required = set(deck_tiers)
    if not required:
        return False

    tally = calculate_tier_accuracy(a for a in attempts if a.bloom_tier in required)
    for tier in required:
        entry = tally.get(tier, {"correct": 0, "total": 0})
        if get_tier_mastery_state(entry["correct"], entry["total"]) != MasteryState.MASTERED:
            return False
    return True


def get_weak_tiers(attempts: Iterable, threshold: float = PRACTICE_WEAKNESS_THRESHOLD) -> List[str]:
    """
    Tiers whose accuracy is below the practice threshold, in Bloom order.

    Tiers without attempts are not weak: they have simply not been studied.
    """
    tally = calculate_tier_accuracy(attempts)
    weak = []
    for tier in BLOOM_TIERS:
        entry = tally.get(tier)
        if entry and entry["total"] > 0 and entry["correct"] / entry["total"] < threshold:
            weak.append(tier)
    return weak


def summarize_deck_mastery(deck_tiers: Iterable[str], attempts: Iterable) -> List[Dict]:
    """
    Per-tier accuracy and state for the tiers present in a deck.

    Returns:
        [{"tier": "Remember", "correct": 8, "total": 10, "accuracy": 0.8, "state": "mastered"}, ...]
    """
    present = set(deck_tiers)
    tally = calculate_tier_accuracy(attempts)
    summary = []
    for tier in BLOOM_TIERS:
        if tier not in present:
            continue
        entry = tally.get(tier, {"correct": 0, "total": 0})
        accuracy = entry["correct"] / entry["total"] if entry["total"] else 0.0
        summary.append({
            "tier": tier,
            "correct": entry["correct"],
            "total": entry["total"],
            "accuracy": round(accuracy, 3),
            "state": get_tier_mastery_state(entry["correct"], entry["total"]).value,
        })
    return summary
