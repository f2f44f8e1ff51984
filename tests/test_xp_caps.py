"""Tests for session and daily XP caps, XP windows and the booster."""
from datetime import datetime, timedelta
from types import SimpleNamespace

from bloomquest.services.xp_caps import (
    apply_session_cap,
    apply_daily_cap,
    roll_xp_windows,
    start_new_xp_session,
    apply_xp_boost,
)

NOW = datetime(2026, 3, 2, 12, 0, 0)


def make_stats(**overrides):
    values = dict(
        session_xp=0,
        session_start=NOW,
        daily_xp=0,
        last_daily_reset=NOW,
        bonus_vault=0,
        is_xp_boosted=False,
        boost_started_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestSessionCap:
    """Test apply_session_cap function."""

    def test_under_cap_full_value(self):
        assert apply_session_cap(20, 100) == 20

    def test_at_cap_overflow_halved(self):
        assert apply_session_cap(20, 150) == 10

    def test_straddling_cap(self):
        """10 XP of headroom counts fully, the other 10 at half value."""
        assert apply_session_cap(20, 140) == 15

    def test_odd_overflow_floored(self):
        assert apply_session_cap(7, 200) == 3

    def test_exactly_filling_cap(self):
        assert apply_session_cap(50, 100) == 50


class TestDailyCap:
    """Test apply_daily_cap function."""

    def test_under_cap(self):
        assert apply_daily_cap(20, 500) == {"daily_award": 20, "vaulted": 0}

    def test_overflow_banked(self):
        assert apply_daily_cap(20, 995) == {"daily_award": 5, "vaulted": 15}

    def test_cap_reached_everything_banked(self):
        assert apply_daily_cap(20, 1000) == {"daily_award": 0, "vaulted": 20}


class TestXpWindows:
    """Test roll_xp_windows and start_new_xp_session."""

    def test_nothing_expired(self):
        stats = make_stats(session_xp=40, daily_xp=300)

        result = roll_xp_windows(stats, NOW + timedelta(minutes=30))

        assert result == {"daily_reset": False, "session_reset": False}
        assert stats.session_xp == 40
        assert stats.daily_xp == 300

    def test_new_utc_day_resets_daily(self):
        stats = make_stats(daily_xp=800, bonus_vault=50, last_daily_reset=datetime(2026, 3, 1, 23, 59))

        result = roll_xp_windows(stats, datetime(2026, 3, 2, 0, 1))

        assert result["daily_reset"] is True
        assert stats.daily_xp == 0
        assert stats.bonus_vault == 50

    def test_stale_session_resets_session_tally(self):
        stats = make_stats(session_xp=150, daily_xp=150)

        result = roll_xp_windows(stats, NOW + timedelta(hours=3))

        assert result["session_reset"] is True
        assert stats.session_xp == 0
        assert stats.session_start == NOW + timedelta(hours=3)
        assert stats.daily_xp == 150

    def test_explicit_new_session(self):
        stats = make_stats(session_xp=90)
        later = NOW + timedelta(minutes=5)

        start_new_xp_session(stats, later)

        assert stats.session_xp == 0
        assert stats.session_start == later


class TestXpBoost:
    """Test apply_xp_boost function."""

    def test_not_boosted(self):
        stats = make_stats()
        assert apply_xp_boost(12, stats, NOW) == 12

    def test_first_boosted_answer_starts_timer(self):
        stats = make_stats(is_xp_boosted=True)

        assert apply_xp_boost(12, stats, NOW) == 24
        assert stats.boost_started_at == NOW

    def test_boost_within_period(self):
        stats = make_stats(is_xp_boosted=True, boost_started_at=NOW - timedelta(minutes=59))
        assert apply_xp_boost(12, stats, NOW) == 24

    def test_boost_expires(self):
        stats = make_stats(is_xp_boosted=True, boost_started_at=NOW - timedelta(minutes=60))

        assert apply_xp_boost(12, stats, NOW) == 12
        assert stats.is_xp_boosted is False
        assert stats.boost_started_at is None
