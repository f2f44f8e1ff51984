"""
Tests for attempt processing.

Tests cover:
1. First correct answer end to end
2. Wrong answers and streaks
3. Weak-card bonus and recency penalty from card history
4. Session and daily caps with the bonus vault
5. Deck level-ups with commander spillover
6. Commander level-ups, frame unlocks and the XP booster
7. Deck mastery bonus
8. Validation errors
"""
from datetime import timedelta

import pytest

from bloomquest.db.models import CardAttempt, User, XpStats, CommanderProgress
from bloomquest.errors import CardNotFoundError, DeckNotFoundError
from bloomquest.services.attempts import process_attempt, claim_bonus_vault
from bloomquest.services.progress import (
    get_or_create_commander,
    get_or_create_deck_progress,
    get_or_create_xp_stats,
    get_progress_summary,
)


def answer(db, card_id, tier, correct=True, when=None, deck_id="bio-101", user_id="u1"):
    return process_attempt(db, user_id, deck_id, card_id, tier, correct, now=when)


class TestFirstCorrectAnswer:
    """A first-time correct Remember answer pays base XP and 5 tokens."""

    def test_end_to_end(self, test_db, now):
        result = answer(test_db, "r1", "Remember", when=now)

        breakdown = result["xp_breakdown"]
        assert breakdown["base"] == 5
        assert breakdown["streak_bonus"] == 0
        assert breakdown["weak_card_bonus"] == 0
        assert breakdown["recency_penalty"] == 0
        assert breakdown["raw_xp"] == 5
        assert breakdown["daily_award"] == 5
        assert breakdown["vaulted"] == 0

        assert result["awarded_tokens"] == 5
        assert result["tokens"] == 5
        assert result["deck_progress"] == {"level": 1, "xp": 5, "xp_to_next": 100, "streak": 1, "is_mastered": False}
        assert result["deck_leveled_up"] is False
        assert result["commander_leveled_up"] is False

    def test_rows_persisted(self, test_db, now):
        answer(test_db, "r1", "Remember", when=now)

        assert test_db.get(User, "u1").tokens == 5
        assert test_db.get(CommanderProgress, "u1").xp == 5
        stats = test_db.get(XpStats, "u1")
        assert stats.session_xp == 5
        assert stats.daily_xp == 5
        assert test_db.query(CardAttempt).count() == 1


class TestStreaks:
    """Test streak handling across answers."""

    def test_wrong_answer_resets_streak_and_pays_nothing(self, test_db, now):
        answer(test_db, "r1", "Remember", when=now)
        answer(test_db, "r2", "Remember", when=now)

        result = answer(test_db, "r3", "Remember", correct=False, when=now)

        assert result["deck_progress"]["streak"] == 0
        assert result["awarded_tokens"] == 0
        assert result["xp_breakdown"]["raw_xp"] == 0
        assert result["tokens"] == 10
        assert test_db.query(CardAttempt).filter(CardAttempt.was_correct.is_(False)).count() == 1

    def test_third_correct_answer_earns_streak_bonus(self, test_db, now):
        answer(test_db, "r1", "Remember", when=now)
        answer(test_db, "r2", "Remember", when=now)

        result = answer(test_db, "r3", "Remember", when=now)

        assert result["deck_progress"]["streak"] == 3
        assert result["xp_breakdown"]["streak_bonus"] == 6
        assert result["xp_breakdown"]["raw_xp"] == 11


class TestCardHistory:
    """Weak-card bonus and recency penalty use this card's own history."""

    def test_weak_card_bonus(self, test_db, now):
        answer(test_db, "c1", "Create", correct=False, when=now - timedelta(days=3))
        answer(test_db, "c1", "Create", correct=False, when=now - timedelta(days=2))

        result = answer(test_db, "c1", "Create", when=now)

        assert result["xp_breakdown"]["weak_card_bonus"] == 10
        assert result["xp_breakdown"]["raw_xp"] == 30

    def test_recency_penalty_floors_at_one(self, test_db, now):
        answer(test_db, "r1", "Remember", when=now - timedelta(hours=1))

        result = answer(test_db, "r1", "Remember", when=now)

        assert result["xp_breakdown"]["recency_penalty"] == -4
        assert result["xp_breakdown"]["raw_xp"] == 1

    def test_history_on_other_cards_ignored(self, test_db, now):
        answer(test_db, "a1", "Apply", correct=False, when=now - timedelta(days=1))

        result = answer(test_db, "a2", "Apply", when=now)

        assert result["xp_breakdown"]["weak_card_bonus"] == 0


class TestCaps:
    """Session and daily caps applied to real rows."""

    def test_session_cap_halves_overflow(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now)
        stats.session_xp = 150
        test_db.commit()

        result = answer(test_db, "c1", "Create", when=now)

        assert result["xp_breakdown"]["session_award"] == 10
        assert test_db.get(XpStats, "u1").session_xp == 170

    def test_daily_cap_overflow_goes_to_vault(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now)
        stats.daily_xp = 995
        test_db.commit()

        result = answer(test_db, "c1", "Create", when=now)

        assert result["xp_breakdown"]["daily_award"] == 5
        assert result["xp_breakdown"]["vaulted"] == 15
        stats = test_db.get(XpStats, "u1")
        assert stats.daily_xp == 1000
        assert stats.bonus_vault == 15
        assert result["deck_progress"]["xp"] == 5

    def test_expired_session_window_resets_tally(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now - timedelta(hours=3))
        stats.session_xp = 150
        test_db.commit()

        result = answer(test_db, "c1", "Create", when=now)

        assert result["xp_breakdown"]["session_award"] == 20
        assert test_db.get(XpStats, "u1").session_xp == 20

    def test_vault_claim_limited_by_daily_headroom(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now)
        stats.daily_xp = 950
        stats.bonus_vault = 80
        test_db.commit()

        result = claim_bonus_vault(test_db, "u1", now)

        assert result["claimed"] == 50
        assert result["bonus_vault"] == 30
        assert result["commander"]["xp"] == 50

    def test_vault_claim_next_day(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now)
        stats.daily_xp = 1000
        stats.bonus_vault = 80
        test_db.commit()

        result = claim_bonus_vault(test_db, "u1", now + timedelta(days=1))

        assert result["claimed"] == 80
        assert result["bonus_vault"] == 0


class TestDeckLevelUp:
    """Deck level-ups feed the commander track."""

    def test_level_up_with_spillover(self, test_db, now):
        progress = get_or_create_deck_progress(test_db, "u1", "bio-101")
        progress.xp = 95
        test_db.commit()

        result = answer(test_db, "c1", "Create", when=now)

        assert result["deck_leveled_up"] is True
        assert result["deck_progress"]["level"] == 2
        assert result["deck_progress"]["xp"] == 15
        assert result["deck_progress"]["xp_to_next"] == 150
        assert result["xp_breakdown"]["commander_award"] == 20 + 75
        assert test_db.get(CommanderProgress, "u1").xp == 95


class TestCommanderLevelUp:
    """Commander level-ups unlock frames and arm the booster."""

    def test_level_five_arms_booster(self, test_db, now):
        commander = get_or_create_commander(test_db, "u1")
        commander.level = 4
        commander.xp = 3990
        commander.xp_to_next = 4000
        test_db.commit()

        result = answer(test_db, "c1", "Create", when=now)

        assert result["commander_leveled_up"] is True
        assert result["new_commander_level"] == 5
        assert result["xp_boost_unlocked"] is True
        assert test_db.get(XpStats, "u1").is_xp_boosted is True

    def test_boosted_answers_double_then_expire(self, test_db, now):
        stats = get_or_create_xp_stats(test_db, "u1", now)
        stats.is_xp_boosted = True
        test_db.commit()

        boosted = answer(test_db, "r1", "Remember", when=now)
        still_boosted = answer(test_db, "r2", "Remember", when=now + timedelta(minutes=30))
        expired = answer(test_db, "r3", "Remember", when=now + timedelta(minutes=61))

        assert boosted["xp_breakdown"]["raw_xp"] == 10
        assert still_boosted["xp_breakdown"]["raw_xp"] == 10
        # Third answer also carries the 3-streak bonus of 6
        assert expired["xp_breakdown"]["raw_xp"] == 11
        assert test_db.get(XpStats, "u1").is_xp_boosted is False

    def test_level_ten_unlocks_frame(self, test_db, now):
        commander = get_or_create_commander(test_db, "u1")
        commander.level = 9
        commander.xp = 255995
        commander.xp_to_next = 256000
        test_db.commit()

        result = answer(test_db, "r1", "Remember", when=now)

        assert result["new_commander_level"] == 10
        assert result["unlocked_item"] == "neon-glow"
        assert test_db.get(User, "u1").active_avatar_frame == "neon-glow"


class TestDeckMastery:
    """Mastery is checked when a deck levels up."""

    def test_mastery_on_level_up(self, test_db, now):
        answer(test_db, "s1", "Remember", deck_id="solo", when=now - timedelta(days=3))
        progress = get_or_create_deck_progress(test_db, "u1", "solo")
        progress.xp = 99
        test_db.commit()

        result = answer(test_db, "s2", "Remember", deck_id="solo", when=now)

        assert result["deck_leveled_up"] is True
        assert result["deck_mastered"] is True
        assert result["awarded_tokens"] == 5 + 100
        assert result["deck_progress"]["is_mastered"] is True

    def test_mastery_awarded_once(self, test_db, now):
        progress = get_or_create_deck_progress(test_db, "u1", "solo")
        progress.xp = 99
        test_db.commit()
        answer(test_db, "s1", "Remember", deck_id="solo", when=now)

        progress = get_or_create_deck_progress(test_db, "u1", "solo")
        progress.xp = progress.xp_to_next - 1
        test_db.commit()
        result = answer(test_db, "s2", "Remember", deck_id="solo", when=now + timedelta(days=2))

        assert result["deck_leveled_up"] is True
        assert result["deck_mastered"] is False
        assert result["awarded_tokens"] == 5

    def test_weak_tier_prevents_mastery(self, test_db, now):
        answer(test_db, "a1", "Apply", correct=False, when=now - timedelta(days=2))
        progress = get_or_create_deck_progress(test_db, "u1", "bio-101")
        progress.xp = 99
        test_db.commit()

        result = answer(test_db, "r1", "Remember", when=now)

        assert result["deck_leveled_up"] is True
        assert result["deck_mastered"] is False


class TestValidation:
    def test_unknown_deck(self, test_db, now):
        with pytest.raises(DeckNotFoundError):
            answer(test_db, "r1", "Remember", deck_id="nope", when=now)

    def test_card_from_another_deck(self, test_db, now):
        with pytest.raises(CardNotFoundError):
            answer(test_db, "s1", "Remember", deck_id="bio-101", when=now)

    def test_unknown_tier(self, test_db, now):
        with pytest.raises(ValueError):
            answer(test_db, "r1", "Recall", when=now)

    def test_failed_attempt_leaves_no_rows(self, test_db, now):
        with pytest.raises(CardNotFoundError):
            answer(test_db, "missing", "Remember", when=now)

        assert test_db.query(CardAttempt).count() == 0
        assert test_db.get(User, "u1") is None


class TestProgressSummary:
    def test_summary_after_answers(self, test_db, now):
        answer(test_db, "r1", "Remember", when=now)
        answer(test_db, "a1", "Apply", correct=False, when=now)

        summary = get_progress_summary(test_db, "u1")

        assert summary["tokens"] == 5
        assert summary["commander"]["level"] == 1
        assert summary["xp_stats"]["daily_xp"] == 5
        deck = summary["decks"][0]
        assert deck["deck_id"] == "bio-101"
        assert deck["total_cards"] == 6
        states = {row["tier"]: row["state"] for row in deck["mastery"]}
        assert states == {"Remember": "mastered", "Apply": "learning", "Create": "unseen"}

    def test_summary_for_unknown_user(self, test_db):
        summary = get_progress_summary(test_db, "ghost")

        assert summary["tokens"] == 0
        assert summary["commander"]["xp_to_next"] == 500
        assert summary["decks"] == []
