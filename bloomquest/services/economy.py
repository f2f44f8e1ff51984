"""Token balance, escalating power-up prices and the shop."""
import math
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from bloomquest.constants import POWER_UP_BASE_PRICES, POWER_UP_PRICE_STEP, TIER_UNLOCK_POWER_UP
from bloomquest.db.models import InventoryItem, PowerUpPurchase
from bloomquest.db.transaction import run_transaction
from bloomquest.errors import InsufficientTokensError, UnknownPowerUpError, UnknownShopItemError
from bloomquest.logging_config import get_logger
from bloomquest.services.catalog import SqlCardCatalog, require_deck
from bloomquest.services.progress import get_or_create_user

logger = get_logger(__name__)

# Global shop catalog. Power-ups are bought for a deck through purchase_power_up;
# every entry can also be stocked in the durable inventory through purchase_shop_item.
SHOP_ITEMS = [
    {
        "id": "retry",
        "name": "Retry",
        "description": "Get a second chance on a wrong answer during a study session.",
        "cost": 20,
        "type": "power-up",
    },
    {
        "id": "hint",
        "name": "Hint",
        "description": "Reveal a helpful clue or memory aid for the current flashcard.",
        "cost": 50,
        "type": "power-up",
    },
    {
        "id": "fifty-fifty",
        "name": "50/50",
        "description": "Eliminate two incorrect options from a multiple-choice question.",
        "cost": 100,
        "type": "power-up",
    },
    {
        "id": "time",
        "name": "Time Warp",
        "description": "Add 15 seconds to the clock in a timed drill.",
        "cost": 15,
        "type": "power-up",
    },
    {
        "id": "focus",
        "name": "Focus Lens",
        "description": "Highlight important keywords on the flashcard.",
        "cost": 20,
        "type": "power-up",
    },
    {
        "id": "unlock",
        "name": "Bloom Unlock",
        "description": "Bypass the 80% mastery requirement to unlock the next Bloom tier.",
        "cost": 200,
        "type": "power-up",
    },
]

_SHOP_ITEMS_BY_ID = {item["id"]: item for item in SHOP_ITEMS}


def power_up_price(base_price: int, purchase_count: int) -> int:
    """
    Price of the next purchase of a power-up in a deck.

    Rises 10% of the base price per earlier purchase: ceil(base * (1 + 0.1 * count)).

    Args:
        base_price: Base price of the power-up type
        purchase_count: Purchases of that type already made in the deck

    Returns:
        Token cost, e.g. 26 for base 20 after 3 purchases
    """
    # round() strips float noise such as 20 * 1.3 == 26.000000000000004
    return math.ceil(round(base_price * (1 + POWER_UP_PRICE_STEP * purchase_count), 9))


def get_base_price(power_up_type: str) -> int:
    try:
        return POWER_UP_BASE_PRICES[power_up_type]
    except KeyError:
        raise UnknownPowerUpError(power_up_type)


def get_deck_purchase_counts(db: Session, user_id: str, deck_id: str) -> Dict[str, int]:
    """
    Purchase count of every power-up type in a deck, zero for types never bought.
    """
    counts = {power_up: 0 for power_up in POWER_UP_BASE_PRICES}
    rows = db.query(PowerUpPurchase).filter(
        PowerUpPurchase.user_id == user_id,
        PowerUpPurchase.deck_id == deck_id
    ).all()
    for row in rows:
        counts[row.power_up_type] = row.count
    return counts


def get_power_up_prices(db: Session, user_id: str, deck_id: str) -> List[Dict]:
    """
    Current price list for a deck.

    Returns:
        [{"type": "retry", "base_price": 20, "purchase_count": 3, "price": 26}, ...]
    """
    counts = get_deck_purchase_counts(db, user_id, deck_id)
    return [
        {
            "type": power_up,
            "base_price": base_price,
            "purchase_count": counts[power_up],
            "price": power_up_price(base_price, counts[power_up]),
        }
        for power_up, base_price in POWER_UP_BASE_PRICES.items()
    ]


def _debit(user, cost: int) -> None:
    if user.tokens < cost:
        raise InsufficientTokensError(balance=user.tokens, cost=cost)
    user.tokens -= cost


def _buy_power_up(session: Session, user_id: str, deck_id: str, power_up_type: str) -> Dict:
    base_price = get_base_price(power_up_type)
    require_deck(SqlCardCatalog(session), deck_id)

    user = get_or_create_user(session, user_id)
    purchase = session.get(PowerUpPurchase, (user_id, deck_id, power_up_type))
    count = purchase.count if purchase else 0
    cost = power_up_price(base_price, count)

    _debit(user, cost)

    if purchase is None:
        purchase = PowerUpPurchase(user_id=user_id, deck_id=deck_id, power_up_type=power_up_type, count=0)
        session.add(purchase)
    purchase.count = count + 1

    return {
        "power_up": power_up_type,
        "cost": cost,
        "purchase_count": purchase.count,
        "next_price": power_up_price(base_price, purchase.count),
        "tokens": user.tokens,
    }


def purchase_power_up(db: Session, user_id: str, deck_id: str, power_up_type: str) -> Dict:
    """
    Spend tokens on a power-up for one deck.

    Debits the escalating price and increments the deck's purchase count for
    that type in one transaction. Nothing changes when the balance is too low.

    Raises:
        UnknownPowerUpError: Not a power-up type
        DeckNotFoundError: Deck missing from the catalog
        InsufficientTokensError: Balance below the price
    """
    receipt = run_transaction(db, lambda session: _buy_power_up(session, user_id, deck_id, power_up_type))
    logger.info(
        f"Power-up {power_up_type} purchased for {receipt['cost']} tokens",
        extra={"user_id": user_id, "deck_id": deck_id}
    )
    return receipt


def _delete_purchase_counts(session: Session, user_id: str, deck_id: str) -> int:
    return session.query(PowerUpPurchase).filter(
        PowerUpPurchase.user_id == user_id,
        PowerUpPurchase.deck_id == deck_id
    ).delete(synchronize_session="fetch")


def reset_deck_purchase_counts(db: Session, user_id: str, deck_id: str) -> int:
    """
    Return every power-up in a deck to its base price.

    Args:
        db: Database session
        user_id: Player id
        deck_id: Deck whose counts are cleared

    Returns:
        Number of count rows removed
    """
    removed = run_transaction(db, lambda session: _delete_purchase_counts(session, user_id, deck_id))
    logger.info(f"Reset {removed} power-up counts", extra={"user_id": user_id, "deck_id": deck_id})
    return removed


def unlock_next_tier(db: Session, user_id: str, deck_id: str) -> Dict:
    """
    Buy the Bloom Unlock power-up to bypass the mastery gate.

    The purchase and the reset of the deck's power-up prices commit together,
    so post-unlock power-ups are back at base price.

    Raises:
        InsufficientTokensError: Balance below the unlock price
    """
    def work(session: Session) -> Dict:
        receipt = _buy_power_up(session, user_id, deck_id, TIER_UNLOCK_POWER_UP)
        session.flush()
        _delete_purchase_counts(session, user_id, deck_id)
        receipt["purchase_count"] = 0
        receipt["next_price"] = get_base_price(TIER_UNLOCK_POWER_UP)
        return receipt

    receipt = run_transaction(db, work)
    logger.info(
        f"Tier unlock bought for {receipt['cost']} tokens",
        extra={"user_id": user_id, "deck_id": deck_id}
    )
    return receipt


def list_shop_items() -> List[Dict]:
    return [dict(item) for item in SHOP_ITEMS]


def get_shop_item(item_id: str) -> Dict:
    try:
        return _SHOP_ITEMS_BY_ID[item_id]
    except KeyError:
        raise UnknownShopItemError(item_id)


def purchase_shop_item(db: Session, user_id: str, item_id: str, now: Optional[datetime] = None) -> Dict:
    """
    Buy a shop item at its fixed price into the durable inventory.

    Inventory counts survive sessions and are unaffected by
    reset_deck_purchase_counts.

    Raises:
        UnknownShopItemError: Not in the shop
        InsufficientTokensError: Balance below the price
    """
    item = get_shop_item(item_id)
    if now is None:
        now = datetime.utcnow()

    def work(session: Session) -> Dict:
        user = get_or_create_user(session, user_id)
        _debit(user, item["cost"])

        entry = session.get(InventoryItem, (user_id, item_id))
        if entry is None:
            entry = InventoryItem(user_id=user_id, item_id=item_id, count=0)
            session.add(entry)
        entry.count += 1
        entry.last_purchased = now

        return {"item_id": item_id, "cost": item["cost"], "count": entry.count, "tokens": user.tokens}

    receipt = run_transaction(db, work)
    logger.info(f"Shop item {item_id} purchased", extra={"user_id": user_id})
    return receipt


def get_inventory(db: Session, user_id: str) -> Dict[str, int]:
    rows = db.query(InventoryItem).filter(InventoryItem.user_id == user_id).all()
    return {row.item_id: row.count for row in rows}


def grant_tokens(db: Session, user_id: str, amount: int) -> int:
    """
    Credit tokens outside of study, e.g. for support or development.

    Returns:
        New balance
    """
    if amount < 0:
        raise ValueError("amount must be non-negative")

    def work(session: Session) -> int:
        user = get_or_create_user(session, user_id)
        user.tokens += amount
        return user.tokens

    return run_transaction(db, work)
