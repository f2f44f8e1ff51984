"""Tests for Bloom-tier accuracy and deck mastery."""
from types import SimpleNamespace

from bloomquest.services.mastery import (
    MasteryState,
    calculate_tier_accuracy,
    get_tier_mastery_state,
    is_deck_mastered,
    get_weak_tiers,
    summarize_deck_mastery,
)


def attempts(tier, correct, wrong=0):
    return (
        [SimpleNamespace(bloom_tier=tier, was_correct=True)] * correct
        + [SimpleNamespace(bloom_tier=tier, was_correct=False)] * wrong
    )


class TestTierMasteryState:
    """Test get_tier_mastery_state function."""

    def test_unseen(self):
        assert get_tier_mastery_state(0, 0) == MasteryState.UNSEEN

    def test_mastered_at_threshold(self):
        assert get_tier_mastery_state(8, 10) == MasteryState.MASTERED

    def test_learning_below_threshold(self):
        assert get_tier_mastery_state(7, 10) == MasteryState.LEARNING


class TestCalculateTierAccuracy:
    def test_tallies_per_tier(self):
        history = attempts("Remember", 3, 1) + attempts("Apply", 0, 2)

        assert calculate_tier_accuracy(history) == {
            "Remember": {"correct": 3, "total": 4},
            "Apply": {"correct": 0, "total": 2},
        }


class TestIsDeckMastered:
    """Test is_deck_mastered function."""

    def test_all_present_tiers_mastered(self):
        history = attempts("Remember", 4, 1) + attempts("Apply", 5)

        assert is_deck_mastered(["Remember", "Remember", "Apply"], history) is True

    def test_one_weak_tier_blocks_mastery(self):
        history = attempts("Remember", 5) + attempts("Apply", 3, 2)

        assert is_deck_mastered(["Remember", "Apply"], history) is False

    def test_unattempted_tier_blocks_mastery(self):
        history = attempts("Remember", 5)

        assert is_deck_mastered(["Remember", "Create"], history) is False

    def test_attempts_on_absent_tiers_ignored(self):
        history = attempts("Remember", 5) + attempts("Evaluate", 0, 9)

        assert is_deck_mastered(["Remember"], history) is True

    def test_empty_deck_never_mastered(self):
        assert is_deck_mastered([], attempts("Remember", 5)) is False


class TestWeakTiers:
    def test_weak_tiers_in_bloom_order(self):
        history = attempts("Create", 1, 1) + attempts("Remember", 9, 1) + attempts("Apply", 2, 2)

        assert get_weak_tiers(history) == ["Apply", "Create"]

    def test_unstudied_tiers_not_weak(self):
        assert get_weak_tiers([]) == []


class TestSummarizeDeckMastery:
    def test_only_present_tiers_listed(self):
        history = attempts("Remember", 4, 1)

        summary = summarize_deck_mastery(["Apply", "Remember"], history)

        assert [row["tier"] for row in summary] == ["Remember", "Apply"]
        assert summary[0] == {"tier": "Remember", "correct": 4, "total": 5, "accuracy": 0.8, "state": "mastered"}
        assert summary[1]["state"] == "unseen"
