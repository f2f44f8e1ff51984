"""Deck study endpoints: attempts, power-ups, sessions and card selections."""
from typing import Optional
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from bloomquest.constants import (
    ATTEMPT_RATE_LIMIT,
    BLOOM_TIERS,
    PURCHASE_RATE_LIMIT,
    SESSION_MODES,
)
from bloomquest.db.database import get_db
from bloomquest.rate_limit import limiter
from bloomquest.routers.identity import get_user_id_from_cookie
from bloomquest.services.attempts import process_attempt
from bloomquest.services.economy import get_power_up_prices, purchase_power_up, unlock_next_tier
from bloomquest.services.sessions import (
    advance_session,
    get_or_create_session,
    select_practice_cards,
    select_starred_cards,
    serialize_session,
    timed_drill_order,
)

router = APIRouter(prefix="/api/decks", tags=["study"])


class AttemptSubmission(BaseModel):
    """Request body for an answered card."""
    card_id: str = Field(..., min_length=1, max_length=128, description="Answered card")
    bloom_tier: str = Field(..., description="Bloom tier the card was shown at")
    was_correct: bool

    @validator('bloom_tier')
    def validate_bloom_tier(cls, v):
        """Validate that bloom_tier is one of the six tiers."""
        if v not in BLOOM_TIERS:
            raise ValueError(f'bloom_tier must be one of {", ".join(BLOOM_TIERS)}')
        return v


class StartSessionRequest(BaseModel):
    """Request body for starting or resuming a session."""
    new: bool = False


class AdvanceSessionRequest(BaseModel):
    """Request body for advancing a session. Mode defaults to the deck's active mode."""
    mode: Optional[str] = None

    @validator('mode')
    def validate_mode(cls, v):
        if v is not None and v not in SESSION_MODES:
            raise ValueError(f'mode must be one of {", ".join(SESSION_MODES)}')
        return v


@router.post("/{deck_id}/attempts")
@limiter.limit(ATTEMPT_RATE_LIMIT)
async def submit_attempt(
    deck_id: str,
    attempt: AttemptSubmission,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Log an answered card and apply rewards.

    Updates atomically:
    - Deck streak, XP and level
    - Commander XP and level, cosmetic unlocks, XP booster
    - Session and daily XP tallies, bonus vault
    - Token balance and deck mastery

    Returns:
    - XP breakdown and level-up flags
    - Updated deck progress and token balance
    """
    user_id = get_user_id_from_cookie(request)
    return process_attempt(
        db,
        user_id,
        deck_id,
        attempt.card_id,
        attempt.bloom_tier,
        attempt.was_correct
    )


@router.get("/{deck_id}/power-ups")
async def list_power_ups(deck_id: str, request: Request, db: Session = Depends(get_db)):
    """Current price and purchase count of every power-up in the deck."""
    user_id = get_user_id_from_cookie(request)
    return {"deck_id": deck_id, "power_ups": get_power_up_prices(db, user_id, deck_id)}


@router.post("/{deck_id}/power-ups/{power_up_type}")
@limiter.limit(PURCHASE_RATE_LIMIT)
async def buy_power_up(
    deck_id: str,
    power_up_type: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Buy a power-up for this deck at its escalating price.

    Returns 402 when the token balance is too low.
    """
    user_id = get_user_id_from_cookie(request)
    return purchase_power_up(db, user_id, deck_id, power_up_type)


@router.post("/{deck_id}/unlock-tier")
@limiter.limit(PURCHASE_RATE_LIMIT)
async def unlock_tier(deck_id: str, request: Request, db: Session = Depends(get_db)):
    """Pay for the Bloom Unlock and reset the deck's power-up prices."""
    user_id = get_user_id_from_cookie(request)
    return unlock_next_tier(db, user_id, deck_id)


# Registered before /sessions/{mode} so "advance" is not read as a mode
@router.post("/{deck_id}/sessions/advance")
async def advance(
    deck_id: str,
    body: AdvanceSessionRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Move past the current card. Finished sessions are returned unchanged."""
    user_id = get_user_id_from_cookie(request)
    study = advance_session(db, user_id, deck_id, mode=body.mode)
    return serialize_session(study)


@router.post("/{deck_id}/sessions/{mode}")
async def start_session(
    deck_id: str,
    mode: str,
    body: StartSessionRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Resume the quest or remix session for this deck, or start a new one.

    Args:
        body: `new=true` discards the saved session and resets the streak
    """
    user_id = get_user_id_from_cookie(request)
    study = get_or_create_session(db, user_id, deck_id, mode, new=body.new)
    return serialize_session(study)


@router.get("/{deck_id}/practice")
async def practice_cards(deck_id: str, request: Request, db: Session = Depends(get_db)):
    """Cards from tiers the user answers correctly less than 80% of the time."""
    user_id = get_user_id_from_cookie(request)
    return select_practice_cards(db, user_id, deck_id)


@router.get("/{deck_id}/starred")
async def starred_cards(deck_id: str, request: Request, db: Session = Depends(get_db)):
    get_user_id_from_cookie(request)
    return {"deck_id": deck_id, "cards": select_starred_cards(db, deck_id)}


@router.get("/{deck_id}/timed-drill")
async def timed_drill(
    deck_id: str,
    request: Request,
    round_id: str = "0",
    db: Session = Depends(get_db)
):
    """Reproducible shuffled order for a timed drill round."""
    user_id = get_user_id_from_cookie(request)
    return timed_drill_order(db, user_id, deck_id, round_id=round_id)
