"""User bootstrap, progress, customization and XP vault endpoints."""
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from bloomquest.db.database import get_db
from bloomquest.db.transaction import run_transaction
from bloomquest.routers.identity import get_user_id_from_cookie, resolve_user
from bloomquest.services.attempts import claim_bonus_vault
from bloomquest.services.economy import get_inventory
from bloomquest.services.progress import get_or_create_user, get_progress_summary
from bloomquest.services.unlocks import get_customizations, select_avatar_frame

router = APIRouter(prefix="/api", tags=["user"])


class AvatarFrameSelection(BaseModel):
    """Request body for equipping an avatar frame."""
    frame_id: str = Field(..., min_length=1, max_length=64, description="Frame to equip")

    @validator('frame_id')
    def validate_frame_id(cls, v):
        """Validate that frame_id is not whitespace."""
        if v.strip() == '':
            raise ValueError('frame_id cannot be empty')
        return v.strip()


@router.get("/bootstrap")
async def bootstrap(
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Bootstrap user session and return initial data.

    Returns:
    - Token balance and commander level
    - Per-deck progress with tier mastery
    - XP session, daily and vault tallies
    - Owned inventory
    """
    user_id = resolve_user(request, response, db)

    summary = get_progress_summary(db, user_id)
    summary["inventory"] = get_inventory(db, user_id)
    return summary


@router.get("/progress")
async def get_progress(request: Request, db: Session = Depends(get_db)):
    """Commander, deck and XP window state for the current user."""
    user_id = get_user_id_from_cookie(request)
    return get_progress_summary(db, user_id)


@router.get("/customizations")
async def list_customizations(request: Request, db: Session = Depends(get_db)):
    user_id = get_user_id_from_cookie(request)
    user = get_or_create_user(db, user_id)
    return get_customizations(db, user)


@router.put("/customizations/avatar-frame")
async def equip_avatar_frame(
    selection: AvatarFrameSelection,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Equip an unlocked avatar frame.

    Returns 403 when the frame is still locked.
    """
    user_id = get_user_id_from_cookie(request)

    def work(session: Session) -> str:
        user = get_or_create_user(session, user_id)
        select_avatar_frame(session, user, selection.frame_id)
        return user.active_avatar_frame

    active = run_transaction(db, work)
    return {"active_avatar_frame": active}


@router.post("/xp/vault/claim")
async def claim_vault(request: Request, db: Session = Depends(get_db)):
    """Move banked bonus XP onto the commander track, up to today's headroom."""
    user_id = get_user_id_from_cookie(request)
    return claim_bonus_vault(db, user_id)
