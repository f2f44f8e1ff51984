"""Application-wide constants and configuration values.

This module centralizes the magic numbers of the reward, leveling and economy
rules, making them easier to maintain and adjust.
"""

# Bloom Taxonomy
BLOOM_TIERS = ("Remember", "Understand", "Apply", "Analyze", "Evaluate", "Create")
"""Cognitive tiers in quest order, lowest first."""

BLOOM_BASE_XP = {
    "Remember": 5,
    "Understand": 8,
    "Apply": 12,
    "Analyze": 14,
    "Evaluate": 16,
    "Create": 20,
}
"""Base XP awarded for a correct answer at each tier."""

# Reward Modifiers
WEAK_CARD_ACCURACY_THRESHOLD = 0.5
"""Prior accuracy below which a card earns the weak-card bonus."""

WEAK_CARD_MAX_BONUS_RATIO = 0.5
"""Bonus as a fraction of base XP at 0% prior accuracy, tapering to 0 at the threshold."""

RECENCY_WINDOW_HOURS = 24
"""A correct answer inside this window triggers the recency penalty."""

RECENCY_PENALTY_RATIO = 0.7
"""Fraction of base XP removed when the card was answered correctly recently."""

MIN_RAW_XP = 1
"""Floor for the combined XP of a correct answer before caps are applied."""

# Streak Bonus (logistic curve)
STREAK_BONUS_MIN_STREAK = 3
"""Streak length at which the bonus starts paying out."""

STREAK_BONUS_CEILING = 102
"""Logistic carrying capacity. Slightly above the cap so the cap is reachable."""

STREAK_BONUS_STEEPNESS = 0.9
"""Logistic growth rate."""

STREAK_BONUS_MIDPOINT = 6
"""Streak length at the curve's inflection point."""

STREAK_BONUS_MAX = 100
"""Hard cap on the streak bonus."""

# XP Caps
SESSION_XP_CAP = 150
"""XP earned at full value per study session; overflow is halved."""

DAILY_XP_CAP = 1000
"""XP credited to progress per UTC day; overflow is banked in the bonus vault."""

SESSION_XP_WINDOW_MINUTES = 120
"""Session XP tally resets when the session is older than this."""

XP_BOOST_MULTIPLIER = 2
"""Raw XP multiplier while the XP booster is active."""

XP_BOOST_DURATION_MINUTES = 60
"""How long the booster lasts once its first boosted answer lands."""

XP_BOOST_LEVEL_INTERVAL = 5
"""Reaching a commander level divisible by this arms the XP booster."""

# Leveling Curves
DECK_INITIAL_XP_TO_NEXT = 100
"""XP required for deck level 1 -> 2."""

DECK_XP_GROWTH = 1.5
"""Deck threshold multiplier applied on every deck level-up."""

COMMANDER_INITIAL_XP_TO_NEXT = 500
"""XP required for commander level 1 -> 2."""

COMMANDER_XP_GROWTH = 2
"""Commander threshold multiplier applied on every commander level-up."""

DECK_LEVEL_UP_SPILLOVER_RATIO = 0.75
"""Share of a cleared deck threshold credited to the commander track."""

# Tokens
TOKENS_PER_CORRECT_ANSWER = 5
"""Tokens awarded for every correct answer."""

DECK_MASTERY_BONUS_TOKENS = 100
"""One-time tokens awarded when a deck becomes mastered."""

# Mastery
MASTERY_THRESHOLD = 0.8
"""Rolling accuracy every tier present in a deck must reach for deck mastery."""

PRACTICE_WEAKNESS_THRESHOLD = 0.8
"""Tier accuracy below which its cards are offered in practice sessions."""

# Power-ups
POWER_UP_BASE_PRICES = {
    "retry": 20,
    "hint": 50,
    "fifty-fifty": 100,
    "time": 15,
    "focus": 20,
    "unlock": 200,
}
"""Base token price of every power-up type."""

POWER_UP_PRICE_STEP = 0.1
"""Price increase per prior purchase of the same type in the same deck (10%)."""

TIER_UNLOCK_POWER_UP = "unlock"
"""Power-up that bypasses the mastery gate and resets the deck's prices."""

# Study Sessions
QUEST_MODE = "quest"
REMIX_MODE = "remix"
SESSION_MODES = (QUEST_MODE, REMIX_MODE)

REMIX_SESSION_SIZE = 10
"""Maximum number of cards in a remix session."""

TIMED_DRILL_SECONDS = 15
"""Default time budget per card in a timed drill."""

# Customizations
DEFAULT_AVATAR_FRAME = "default"
"""Frame every user owns and starts with."""

AVATAR_FRAME_CATEGORY = "avatar_frame"

# Cookie Configuration
COOKIE_NAME = "bq_uid"
"""Name of the cookie used to store the user id."""

# Rate Limiting
DEFAULT_RATE_LIMIT = "100/minute"
"""Default request budget per client address."""

ATTEMPT_RATE_LIMIT = "60/minute"
"""Maximum number of logged attempts per minute per client."""

PURCHASE_RATE_LIMIT = "20/minute"
"""Maximum number of purchases per minute per client."""

# Logging
DEFAULT_LOG_LEVEL = "INFO"
"""Default logging level for the application."""
