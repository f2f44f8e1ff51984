"""Cookie-based anonymous identity shared by the routers."""
import uuid
from datetime import datetime
from fastapi import HTTPException, Request, Response
from sqlalchemy.orm import Session
from bloomquest.config import settings
from bloomquest.constants import COOKIE_NAME
from bloomquest.db.models import User
from bloomquest.db.transaction import run_transaction
from bloomquest.logging_config import get_logger
from bloomquest.services.progress import get_or_create_user

logger = get_logger(__name__)


def get_user_id_from_cookie(request: Request) -> str:
    """Extract user ID from cookie."""
    user_id = request.cookies.get(COOKIE_NAME)
    if not user_id:
        raise HTTPException(status_code=401, detail="No user session found")
    return user_id


def resolve_user(request: Request, response: Response, db: Session) -> str:
    """
    Get or create anonymous user based on cookie.

    A cookie whose user row is missing keeps its id; the row is recreated
    with defaults.

    Args:
        request: FastAPI request
        response: FastAPI response (to set cookie)
        db: Database session

    Returns:
        User id
    """
    user_id = request.cookies.get(COOKIE_NAME)
    is_new = not user_id or db.get(User, user_id) is None
    if not user_id:
        user_id = f"bq_{uuid.uuid4()}"

    def touch(session: Session) -> None:
        get_or_create_user(session, user_id).last_active_at = datetime.utcnow()

    run_transaction(db, touch)
    if not is_new:
        return user_id

    logger.info("Created user", extra={"user_id": user_id})

    response.set_cookie(
        key=COOKIE_NAME,
        value=user_id,
        max_age=settings.COOKIE_MAX_AGE,
        httponly=settings.COOKIE_HTTPONLY,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE
    )

    return user_id
