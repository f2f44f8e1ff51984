"""
Unit tests for deck and commander leveling.

Tests cover:
1. apply_deck_xp() - single level-up per credit, x1.5 thresholds
2. deck_level_up_spillover() - 75% of the cleared threshold
3. apply_commander_xp() - doubling thresholds, multi-level credits, booster levels
4. get_level_progress() - display summary
"""
from types import SimpleNamespace

from bloomquest.services.leveling import (
    apply_deck_xp,
    apply_commander_xp,
    deck_level_up_spillover,
    get_level_progress,
)


class TestApplyDeckXp:
    """Test apply_deck_xp function."""

    def test_credit_below_threshold(self):
        progress = SimpleNamespace(level=1, xp=10, xp_to_next=100)

        assert apply_deck_xp(progress, 15) is None
        assert (progress.level, progress.xp, progress.xp_to_next) == (1, 25, 100)

    def test_level_up_carries_remainder(self):
        progress = SimpleNamespace(level=1, xp=90, xp_to_next=100)

        result = apply_deck_xp(progress, 15)

        assert (progress.level, progress.xp, progress.xp_to_next) == (2, 5, 150)
        assert result == {"from_level": 1, "to_level": 2, "cleared_threshold": 100, "next_threshold": 150}

    def test_exact_threshold_levels_up(self):
        progress = SimpleNamespace(level=2, xp=140, xp_to_next=150)

        apply_deck_xp(progress, 10)

        assert (progress.level, progress.xp, progress.xp_to_next) == (3, 0, 225)

    def test_threshold_growth_floored(self):
        progress = SimpleNamespace(level=3, xp=225, xp_to_next=225)

        apply_deck_xp(progress, 0)

        assert progress.xp_to_next == 337

    def test_one_level_per_credit(self):
        progress = SimpleNamespace(level=1, xp=0, xp_to_next=100)

        apply_deck_xp(progress, 400)

        assert progress.level == 2
        assert progress.xp == 300


class TestSpillover:
    def test_seventy_five_percent_of_cleared_threshold(self):
        assert deck_level_up_spillover(100) == 75
        assert deck_level_up_spillover(150) == 112


class TestApplyCommanderXp:
    """Test apply_commander_xp function."""

    def test_no_level_up(self):
        commander = SimpleNamespace(level=1, xp=0, xp_to_next=500)

        assert apply_commander_xp(commander, 499) is None
        assert commander.xp == 499

    def test_level_up_doubles_threshold(self):
        commander = SimpleNamespace(level=1, xp=480, xp_to_next=500)

        result = apply_commander_xp(commander, 30)

        assert (commander.level, commander.xp, commander.xp_to_next) == (2, 10, 1000)
        assert result["levels_gained"] == [2]
        assert result["xp_boost_unlocked"] is False

    def test_large_credit_clears_several_levels(self):
        commander = SimpleNamespace(level=1, xp=0, xp_to_next=500)

        result = apply_commander_xp(commander, 1600)

        assert (commander.level, commander.xp, commander.xp_to_next) == (3, 100, 2000)
        assert result["levels_gained"] == [2, 3]
        assert commander.xp < commander.xp_to_next

    def test_reaching_level_five_arms_booster(self):
        commander = SimpleNamespace(level=4, xp=3990, xp_to_next=4000)

        result = apply_commander_xp(commander, 20)

        assert result["to_level"] == 5
        assert result["xp_boost_unlocked"] is True


class TestGetLevelProgress:
    def test_percentage(self):
        result = get_level_progress(3, 40, 225)

        assert result == {"level": 3, "xp": 40, "xp_to_next": 225, "progress_percentage": 17.8}

    def test_zero_threshold(self):
        assert get_level_progress(1, 0, 0)["progress_percentage"] == 0.0
