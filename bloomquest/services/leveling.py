"""Deck and commander leveling curves."""
import math
from typing import Dict, Optional
from bloomquest.constants import (
    DECK_XP_GROWTH,
    COMMANDER_XP_GROWTH,
    DECK_LEVEL_UP_SPILLOVER_RATIO,
    XP_BOOST_LEVEL_INTERVAL,
)


def apply_deck_xp(progress, amount: int) -> Optional[Dict]:
    """
    Credit XP to a deck and level it up when the threshold is reached.

    At most one level-up happens per credit: the level increments, the
    threshold is subtracted from xp and the next threshold grows x1.5.

    Args:
        progress: DeckProgress instance (mutated)
        amount: Daily-capped XP to credit

    Returns:
        Dictionary with level-up info if leveled up, None otherwise:
        {
            "from_level": 1,
            "to_level": 2,
            "cleared_threshold": 100,
            "next_threshold": 150
        }
    """
    progress.xp += amount

    if progress.xp < progress.xp_to_next:
        return None

    cleared = progress.xp_to_next
    from_level = progress.level

    progress.level += 1
    progress.xp -= cleared
    progress.xp_to_next = math.floor(cleared * DECK_XP_GROWTH)

    return {
        "from_level": from_level,
        "to_level": progress.level,
        "cleared_threshold": cleared,
        "next_threshold": progress.xp_to_next,
    }


def deck_level_up_spillover(cleared_threshold: int) -> int:
    """Commander XP granted on top of the award when a deck levels up."""
    return math.floor(cleared_threshold * DECK_LEVEL_UP_SPILLOVER_RATIO)


def apply_commander_xp(commander, amount: int) -> Optional[Dict]:
    """
    Credit XP to the commander track and level it up when the threshold is reached.

    Thresholds double on every level-up; xp wraps so it always stays in
    [0, xp_to_next). A very large credit can clear several levels.

    Args:
        commander: CommanderProgress instance (mutated)
        amount: XP to credit

    Returns:
        Dictionary with level-up info if leveled up, None otherwise:
        {
            "from_level": 4,
            "to_level": 5,
            "levels_gained": [5],
            "xp_boost_unlocked": True
        }
    """
    commander.xp += amount

    if commander.xp < commander.xp_to_next:
        return None

    from_level = commander.level
    levels_gained = []
    while commander.xp >= commander.xp_to_next:
        commander.xp -= commander.xp_to_next
        commander.level += 1
        commander.xp_to_next = math.floor(commander.xp_to_next * COMMANDER_XP_GROWTH)
        levels_gained.append(commander.level)

    return {
        "from_level": from_level,
        "to_level": commander.level,
        "levels_gained": levels_gained,
        "xp_boost_unlocked": any(level % XP_BOOST_LEVEL_INTERVAL == 0 for level in levels_gained),
    }


def get_level_progress(level: int, xp: int, xp_to_next: int) -> Dict:
    """
    Summarize progress toward the next level for display.

    Args:
        level: Current level
        xp: XP inside the current level
        xp_to_next: Threshold of the current level

    Returns:
        {"level": 3, "xp": 40, "xp_to_next": 225, "progress_percentage": 17.8}
    """
    progress_percentage = (xp / xp_to_next) * 100 if xp_to_next else 0.0
    return {
        "level": level,
        "xp": xp,
        "xp_to_next": xp_to_next,
        "progress_percentage": round(progress_percentage, 1),
    }
