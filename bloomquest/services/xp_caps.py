"""Session and daily XP caps with overflow banking."""
from datetime import datetime, timedelta
from typing import Dict
from bloomquest.constants import (
    SESSION_XP_CAP,
    DAILY_XP_CAP,
    SESSION_XP_WINDOW_MINUTES,
    XP_BOOST_MULTIPLIER,
    XP_BOOST_DURATION_MINUTES,
)


def apply_session_cap(raw_xp: int, session_xp: int, cap: int = SESSION_XP_CAP) -> int:
    """
    Dampen XP earned past the session cap.

    XP inside the remaining headroom counts in full; the overflow counts at
    half value (floored). The caller adds the full raw amount to the tally.

    Args:
        raw_xp: XP earned by the answer
        session_xp: XP already tallied this session
        cap: Session cap

    Returns:
        Session-capped award, e.g. 10 for raw 20 at session_xp 150
    """
    if session_xp < cap:
        available = cap - session_xp
        overflow = max(0, raw_xp - available)
        return min(raw_xp, available) + overflow // 2
    return raw_xp // 2


def apply_daily_cap(session_award: int, daily_xp: int, cap: int = DAILY_XP_CAP) -> Dict[str, int]:
    """
    Split a session-capped award into the part credited today and the part banked.

    Args:
        session_award: Output of apply_session_cap
        daily_xp: XP already credited today
        cap: Daily cap

    Returns:
        {"daily_award": credited XP, "vaulted": XP for the bonus vault}
    """
    available = max(0, cap - daily_xp)
    daily_award = min(session_award, available)
    return {"daily_award": daily_award, "vaulted": session_award - daily_award}


def roll_xp_windows(stats, now: datetime) -> Dict[str, bool]:
    """
    Reset expired session and daily tallies on an XpStats row.

    - daily_xp resets when `now` falls on a later UTC day than last_daily_reset
    - session_xp resets once the session is older than the session window

    The bonus vault is never touched.

    Args:
        stats: XpStats instance (mutated)
        now: Reference time (naive UTC)

    Returns:
        {"daily_reset": bool, "session_reset": bool}
    """
    daily_reset = False
    session_reset = False

    if stats.last_daily_reset is None or stats.last_daily_reset.date() < now.date():
        stats.daily_xp = 0
        stats.last_daily_reset = now
        daily_reset = True

    window = timedelta(minutes=SESSION_XP_WINDOW_MINUTES)
    if stats.session_start is None or now - stats.session_start >= window:
        stats.session_xp = 0
        stats.session_start = now
        session_reset = True

    return {"daily_reset": daily_reset, "session_reset": session_reset}


def start_new_xp_session(stats, now: datetime) -> None:
    """Reset the session tally when the player explicitly starts a new session."""
    stats.session_xp = 0
    stats.session_start = now


def apply_xp_boost(raw_xp: int, stats, now: datetime) -> int:
    """
    Double raw XP while the booster is active and consume it when it runs out.

    The boosted period starts with the first boosted answer and lasts
    XP_BOOST_DURATION_MINUTES.

    Args:
        raw_xp: XP before the booster
        stats: XpStats instance (mutated)
        now: Reference time (naive UTC)

    Returns:
        Boosted or unchanged XP
    """
    if not stats.is_xp_boosted:
        return raw_xp

    if stats.boost_started_at is None:
        stats.boost_started_at = now
    elif now - stats.boost_started_at >= timedelta(minutes=XP_BOOST_DURATION_MINUTES):
        stats.is_xp_boosted = False
        stats.boost_started_at = None
        return raw_xp

    return raw_xp * XP_BOOST_MULTIPLIER
