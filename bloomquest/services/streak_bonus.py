"""Streak bonus XP on a bounded logistic curve."""
import math
from bloomquest.constants import (
    STREAK_BONUS_MIN_STREAK,
    STREAK_BONUS_CEILING,
    STREAK_BONUS_STEEPNESS,
    STREAK_BONUS_MIDPOINT,
    STREAK_BONUS_MAX,
)
from bloomquest.services.rewards import round_half_up


def get_streak_bonus(streak: int) -> int:
    """
    Calculate bonus XP for a run of consecutive correct answers.

    Formula:
    - streak < 3: no bonus
    - otherwise: round_half_up(102 / (1 + e^(-0.9 * (streak - 6)))), clamped to [0, 100]

    A 3-streak pays 6 XP, a 6-streak 51 XP, and the cap is reached at 11.

    Args:
        streak: Current consecutive correct answers (>= 0)

    Returns:
        Bonus XP between 0 and 100
    """
    if streak < STREAK_BONUS_MIN_STREAK:
        return 0

    raw_bonus = STREAK_BONUS_CEILING / (
        1 + math.exp(-STREAK_BONUS_STEEPNESS * (streak - STREAK_BONUS_MIDPOINT))
    )
    return max(0, min(STREAK_BONUS_MAX, round_half_up(raw_bonus)))
