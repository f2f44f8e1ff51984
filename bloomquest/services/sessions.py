"""Study session sequencing.

Quest sessions walk the Bloom tiers in order. Each tier's card order is a
deterministic shuffle seeded by user, deck and tier, realized when the cursor
first reaches the tier; tiers without cards are skipped. Remix sessions take a
shuffled subset of the whole deck and are discarded once finished.

Sequencing commits separately from attempt processing: the cursor only
decides what is shown next, never what is rewarded.
"""
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from bloomquest.constants import (
    BLOOM_TIERS,
    QUEST_MODE,
    REMIX_MODE,
    SESSION_MODES,
    REMIX_SESSION_SIZE,
    TIMED_DRILL_SECONDS,
)
from bloomquest.db.models import CardAttempt, StudySession
from bloomquest.db.transaction import run_transaction
from bloomquest.errors import InvalidSessionModeError, SessionNotFoundError
from bloomquest.logging_config import get_logger
from bloomquest.services.catalog import CardCatalog, SqlCardCatalog, require_deck
from bloomquest.services.mastery import get_weak_tiers
from bloomquest.services.progress import get_or_create_user, get_or_create_deck_progress, get_or_create_xp_stats
from bloomquest.services.shuffle import deterministic_shuffle, session_seed
from bloomquest.services.xp_caps import start_new_xp_session

logger = get_logger(__name__)

REMIX_ORDER_KEY = "remix"


def _check_mode(mode: str) -> str:
    if mode not in SESSION_MODES:
        raise InvalidSessionModeError(mode)
    return mode


def _tier_order(catalog: CardCatalog, user_id: str, deck_id: str, tier: str) -> List[str]:
    cards = catalog.fetch_cards_by_bloom_tier(deck_id, tier)
    return deterministic_shuffle([c.id for c in cards], session_seed(user_id, deck_id, tier))


def _next_tier_with_cards(catalog: CardCatalog, user_id: str, deck_id: str, after: Optional[str]):
    """First tier after `after` (or from the start) that has cards, with its order."""
    start = BLOOM_TIERS.index(after) + 1 if after else 0
    for tier in BLOOM_TIERS[start:]:
        order = _tier_order(catalog, user_id, deck_id, tier)
        if order:
            return tier, order
        logger.debug(f"Skipping empty tier {tier}", extra={"user_id": user_id, "deck_id": deck_id})
    return None, []


def _reset_quest(session: StudySession, catalog: CardCatalog) -> None:
    tier, order = _next_tier_with_cards(catalog, session.user_id, session.deck_id, None)
    session.current_tier = tier
    session.cursor = 0
    session.orders = {tier: order} if tier else {}
    session.completed_tiers = []
    session.total_cards = len(catalog.fetch_all_cards_in_deck(session.deck_id))
    session.is_complete = tier is None


def _reset_remix(session: StudySession, catalog: CardCatalog, generation: int) -> None:
    cards = catalog.fetch_all_cards_in_deck(session.deck_id)
    seed = session_seed(session.user_id, session.deck_id, f"{REMIX_ORDER_KEY}:{generation}")
    order = deterministic_shuffle([c.id for c in cards], seed)[:REMIX_SESSION_SIZE]
    session.current_tier = None
    session.cursor = 0
    session.orders = {REMIX_ORDER_KEY: order}
    session.completed_tiers = []
    session.total_cards = len(order)
    session.is_complete = not order


def _active_order(session: StudySession) -> List[str]:
    if session.mode == REMIX_MODE:
        return list(session.orders.get(REMIX_ORDER_KEY, []))
    if session.current_tier is None:
        return []
    return list(session.orders.get(session.current_tier, []))


def _store_active_order(session: StudySession, order: List[str]) -> None:
    key = REMIX_ORDER_KEY if session.mode == REMIX_MODE else session.current_tier
    session.orders = {**session.orders, key: order}


def _drop_missing_cards(session: StudySession, catalog: CardCatalog) -> bool:
    """
    Remove card ids that are no longer in the deck from the active order.

    The cursor keeps pointing at the same upcoming card. Returns True when
    anything was removed.
    """
    if session.is_complete:
        return False

    order = _active_order(session)
    valid_ids = {c.id for c in catalog.fetch_all_cards_in_deck(session.deck_id)}
    kept = [card_id for card_id in order if card_id in valid_ids]
    if len(kept) == len(order):
        return False

    removed_before_cursor = sum(1 for card_id in order[:session.cursor] if card_id not in valid_ids)
    logger.warning(
        f"Dropped {len(order) - len(kept)} missing cards from {session.mode} session",
        extra={"user_id": session.user_id, "deck_id": session.deck_id}
    )
    _store_active_order(session, kept)
    session.cursor = max(0, session.cursor - removed_before_cursor)
    if session.mode == REMIX_MODE:
        session.total_cards = len(kept)
    return True


def _step(session: StudySession, catalog: CardCatalog) -> None:
    """Move the cursor to the next card, crossing tiers or finishing as needed."""
    order = _active_order(session)
    next_index = session.cursor + 1

    if next_index < len(order):
        session.cursor = next_index
        return

    if session.mode == REMIX_MODE:
        _finish(session)
        session.orders = {}
        return

    completed = list(session.completed_tiers or []) + [session.current_tier]
    session.completed_tiers = completed
    tier, tier_order = _next_tier_with_cards(catalog, session.user_id, session.deck_id, session.current_tier)
    if tier is None:
        _finish(session)
        return

    session.current_tier = tier
    session.cursor = 0
    session.orders = {**session.orders, tier: tier_order}


def _finish(session: StudySession) -> None:
    session.is_complete = True
    session.cursor = 0
    session.current_tier = None
    logger.info(
        f"{session.mode.capitalize()} session complete",
        extra={"user_id": session.user_id, "deck_id": session.deck_id}
    )


def _settle_cursor(session: StudySession, catalog: CardCatalog) -> None:
    # After filtering the cursor may sit past the end of the active order
    while not session.is_complete and session.cursor >= len(_active_order(session)):
        session.cursor = max(0, len(_active_order(session)) - 1)
        _step(session, catalog)


def get_or_create_session(
    db: Session,
    user_id: str,
    deck_id: str,
    mode: str,
    new: bool = False,
    now: Optional[datetime] = None,
    catalog: Optional[CardCatalog] = None
) -> StudySession:
    """
    Resume the user's session for a deck and mode, or start one.

    Resuming keeps the persisted tier and cursor. A new session (explicit
    `new=True`, no session yet, or a finished remix) replaces the old one,
    resets the deck streak and starts a fresh XP session tally.

    Args:
        db: Database session
        user_id: Player id
        deck_id: Deck to study
        mode: "quest" or "remix"
        new: Discard any existing session and start over
        now: Start time (default: utcnow)
        catalog: Card catalog (default: SqlCardCatalog over `db`)

    Returns:
        The active StudySession

    Raises:
        InvalidSessionModeError: Unknown mode
        DeckNotFoundError: Deck missing from the catalog
    """
    _check_mode(mode)
    if now is None:
        now = datetime.utcnow()
    catalog = catalog or SqlCardCatalog(db)

    def work(session_db: Session) -> StudySession:
        require_deck(catalog, deck_id)
        get_or_create_user(session_db, user_id)
        progress = get_or_create_deck_progress(session_db, user_id, deck_id)
        progress.mode = mode

        study = session_db.query(StudySession).filter(
            StudySession.user_id == user_id,
            StudySession.deck_id == deck_id,
            StudySession.mode == mode
        ).first()

        expired_remix = study is not None and mode == REMIX_MODE and study.is_complete
        if study is not None and not new and not expired_remix:
            if _drop_missing_cards(study, catalog):
                _settle_cursor(study, catalog)
                study.updated_at = now
            return study

        if study is None:
            study = StudySession(user_id=user_id, deck_id=deck_id, mode=mode, generation=0)
            session_db.add(study)
        else:
            study.generation = (study.generation or 0) + 1

        if mode == QUEST_MODE:
            _reset_quest(study, catalog)
        else:
            _reset_remix(study, catalog, study.generation)
        study.started_at = now
        study.updated_at = now

        progress.streak = 0
        start_new_xp_session(get_or_create_xp_stats(session_db, user_id, now), now)

        logger.info(
            f"Started {mode} session with {study.total_cards} cards",
            extra={"user_id": user_id, "deck_id": deck_id, "session_mode": mode}
        )
        return study

    return run_transaction(db, work)


def advance_session(
    db: Session,
    user_id: str,
    deck_id: str,
    mode: Optional[str] = None,
    now: Optional[datetime] = None,
    catalog: Optional[CardCatalog] = None
) -> StudySession:
    """
    Move the session cursor past the current card.

    Args:
        db: Database session
        user_id: Player id
        deck_id: Deck being studied
        mode: Session mode; defaults to the deck's active mode
        now: Update time (default: utcnow)
        catalog: Card catalog (default: SqlCardCatalog over `db`)

    Returns:
        The updated StudySession; finished sessions are returned unchanged

    Raises:
        SessionNotFoundError: No session for this deck and mode
    """
    if now is None:
        now = datetime.utcnow()
    catalog = catalog or SqlCardCatalog(db)

    def work(session_db: Session) -> StudySession:
        active_mode = mode
        if active_mode is None:
            progress = get_or_create_deck_progress(session_db, user_id, deck_id)
            active_mode = progress.mode
        _check_mode(active_mode)

        study = session_db.query(StudySession).filter(
            StudySession.user_id == user_id,
            StudySession.deck_id == deck_id,
            StudySession.mode == active_mode
        ).first()
        if study is None:
            raise SessionNotFoundError(deck_id, active_mode)

        if study.is_complete:
            return study

        shown_card = current_card_id(study)
        _drop_missing_cards(study, catalog)
        _settle_cursor(study, catalog)
        # If the shown card left the deck the cursor already moved past it
        if not study.is_complete and current_card_id(study) == shown_card:
            _step(study, catalog)
        study.updated_at = now
        return study

    return run_transaction(db, work)


def current_card_id(study: StudySession) -> Optional[str]:
    """Card the cursor points at, or None when the session is complete."""
    if study.is_complete:
        return None
    order = _active_order(study)
    if study.cursor < len(order):
        return order[study.cursor]
    return None


def serialize_session(study: StudySession) -> Dict:
    """
    Client view of a study session.

    Returns:
        {
            "deck_id": "bio-101",
            "mode": "quest",
            "current_tier": "Apply",
            "cursor": 2,
            "current_card_id": "c-17",
            "tier_card_count": 6,
            "completed_tiers": ["Remember"],
            "total_cards": 24,
            "is_complete": False,
            ...
        }
    """
    return {
        "deck_id": study.deck_id,
        "mode": study.mode,
        "current_tier": study.current_tier,
        "cursor": study.cursor,
        "current_card_id": current_card_id(study),
        "tier_card_count": len(_active_order(study)),
        "completed_tiers": list(study.completed_tiers or []),
        "total_cards": study.total_cards,
        "is_complete": bool(study.is_complete),
        "started_at": study.started_at.isoformat() if study.started_at else None,
        "updated_at": study.updated_at.isoformat() if study.updated_at else None,
    }


def serialize_card(card) -> Dict:
    return {
        "id": card.id,
        "bloom_tier": card.bloom_tier,
        "prompt": card.prompt,
        "is_starred": bool(card.is_starred),
    }


def select_practice_cards(
    db: Session,
    user_id: str,
    deck_id: str,
    catalog: Optional[CardCatalog] = None
) -> Dict:
    """
    Cards from the tiers the user is weak in (accuracy below 80%).

    Returns:
        {"weak_tiers": ["Apply"], "cards": [...]}
    """
    catalog = catalog or SqlCardCatalog(db)
    require_deck(catalog, deck_id)

    attempts = db.query(CardAttempt).filter(
        CardAttempt.user_id == user_id,
        CardAttempt.deck_id == deck_id
    ).all()
    weak_tiers = get_weak_tiers(attempts)
    cards = [c for c in catalog.fetch_all_cards_in_deck(deck_id) if c.bloom_tier in weak_tiers]

    return {"weak_tiers": weak_tiers, "cards": [serialize_card(c) for c in cards]}


def select_starred_cards(db: Session, deck_id: str, catalog: Optional[CardCatalog] = None) -> List[Dict]:
    catalog = catalog or SqlCardCatalog(db)
    require_deck(catalog, deck_id)
    return [serialize_card(c) for c in catalog.fetch_all_cards_in_deck(deck_id) if c.is_starred]


def timed_drill_order(
    db: Session,
    user_id: str,
    deck_id: str,
    round_id: str = "0",
    seconds_per_card: int = TIMED_DRILL_SECONDS,
    catalog: Optional[CardCatalog] = None
) -> Dict:
    """
    Shuffled order of the whole deck for a timed drill.

    The same round id always reproduces the same order.

    Returns:
        {"card_ids": [...], "seconds_per_card": 15, "total_seconds": 360}
    """
    catalog = catalog or SqlCardCatalog(db)
    require_deck(catalog, deck_id)
    cards = catalog.fetch_all_cards_in_deck(deck_id)
    order = deterministic_shuffle([c.id for c in cards], session_seed(user_id, deck_id, f"timed:{round_id}"))
    return {
        "card_ids": order,
        "seconds_per_card": seconds_per_card,
        "total_seconds": seconds_per_card * len(order),
    }
