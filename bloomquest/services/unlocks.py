"""Commander-level cosmetic unlocks."""
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from bloomquest.constants import AVATAR_FRAME_CATEGORY, DEFAULT_AVATAR_FRAME
from bloomquest.db.models import User, UnlockedCustomization
from bloomquest.errors import CustomizationLockedError

# Frame id -> display name and the commander level that unlocks it
AVATAR_FRAMES = {
    "neon-glow": {"name": "Neon Glow", "unlock_level": 10},
    "commander-gold": {"name": "Commander Gold", "unlock_level": 20},
    "galactic-aura": {"name": "Galactic Aura", "unlock_level": 30},
    "electric-surge": {"name": "Electric Surge", "unlock_level": 40},
}


def find_unlock_for_level(level: int, already_unlocked: Optional[set] = None) -> Optional[str]:
    """
    Return the frame registered for exactly this commander level.

    Args:
        level: Commander level just reached
        already_unlocked: Frame ids the user owns; these are skipped

    Returns:
        Frame id, or None when nothing new unlocks at this level
    """
    owned = already_unlocked or set()
    for frame_id, frame in AVATAR_FRAMES.items():
        if frame["unlock_level"] == level and frame_id not in owned:
            return frame_id
    return None


def get_unlocked_item_ids(db: Session, user_id: str, category: str = AVATAR_FRAME_CATEGORY) -> set:
    rows = db.query(UnlockedCustomization.item_id).filter(
        UnlockedCustomization.user_id == user_id,
        UnlockedCustomization.category == category
    ).all()
    return {row[0] for row in rows}


def unlock_for_levels(db: Session, user: User, levels: List[int], now) -> Optional[str]:
    """
    Unlock and equip the frames registered for newly reached commander levels.

    Runs inside the caller's transaction; does not commit.

    Args:
        db: Database session
        user: User whose commander leveled up (active frame is mutated)
        levels: Levels reached by this level-up, ascending
        now: Unlock timestamp

    Returns:
        Id of the last frame unlocked, or None
    """
    owned = get_unlocked_item_ids(db, user.id)
    unlocked = None

    for level in levels:
        frame_id = find_unlock_for_level(level, owned)
        if frame_id is None:
            continue
        db.add(UnlockedCustomization(
            user_id=user.id,
            category=AVATAR_FRAME_CATEGORY,
            item_id=frame_id,
            unlocked_at=now
        ))
        owned.add(frame_id)
        user.active_avatar_frame = frame_id
        unlocked = frame_id

    return unlocked


def get_customizations(db: Session, user: User) -> Dict:
    """
    List every frame with its lock state and the active selection.

    Returns:
        {
            "active_avatar_frame": "neon-glow",
            "avatar_frames": [{"id": "neon-glow", "name": ..., "unlock_level": 10, "unlocked": True}, ...]
        }
    """
    owned = get_unlocked_item_ids(db, user.id)
    frames = [{
        "id": DEFAULT_AVATAR_FRAME,
        "name": "Default",
        "unlock_level": 1,
        "unlocked": True,
    }]
    for frame_id, frame in sorted(AVATAR_FRAMES.items(), key=lambda kv: kv[1]["unlock_level"]):
        frames.append({
            "id": frame_id,
            "name": frame["name"],
            "unlock_level": frame["unlock_level"],
            "unlocked": frame_id in owned,
        })

    return {
        "active_avatar_frame": user.active_avatar_frame,
        "avatar_frames": frames,
    }


def select_avatar_frame(db: Session, user: User, frame_id: str) -> None:
    """
    Equip an unlocked frame. Does not commit.

    Raises:
        CustomizationLockedError: The frame is unknown or still locked
    """
    if frame_id != DEFAULT_AVATAR_FRAME and frame_id not in get_unlocked_item_ids(db, user.id):
        raise CustomizationLockedError(frame_id)
    user.active_avatar_frame = frame_id
