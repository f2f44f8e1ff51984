"""Shop catalog, purchases and inventory."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from bloomquest.constants import PURCHASE_RATE_LIMIT
from bloomquest.db.database import get_db
from bloomquest.rate_limit import limiter
from bloomquest.routers.identity import get_user_id_from_cookie
from bloomquest.services.economy import get_inventory, list_shop_items, purchase_shop_item

router = APIRouter(prefix="/api/shop", tags=["shop"])


@router.get("/items")
async def shop_items():
    return {"items": list_shop_items()}


@router.post("/items/{item_id}/purchase")
@limiter.limit(PURCHASE_RATE_LIMIT)
async def buy_item(item_id: str, request: Request, db: Session = Depends(get_db)):
    """
    Buy one shop item at its fixed price.

    Returns 402 when the token balance is too low, 400 for unknown items.
    """
    user_id = get_user_id_from_cookie(request)
    return purchase_shop_item(db, user_id, item_id)


@router.get("/inventory")
async def inventory(request: Request, db: Session = Depends(get_db)):
    user_id = get_user_id_from_cookie(request)
    return {"items": get_inventory(db, user_id)}
