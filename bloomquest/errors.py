"""Typed failures raised by the engine.

Every error the services raise derives from EngineError so the HTTP layer can
render them with one exception handler:

    raise InsufficientTokensError(balance=40, cost=55)

Missing progress rows are never an error (defaults are created instead);
a missing deck is, since nothing can be computed without the catalog.
"""
from typing import Optional


class EngineError(Exception):
    """
    Base exception for engine errors.

    Carries an HTTP status code, a stable error code for clients and an
    optional details dict.
    """

    status_code: int = 500
    error_code: str = "engine_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class InsufficientTokensError(EngineError):
    """Purchase attempted with a balance below the price. Nothing was mutated."""

    status_code = 402
    error_code = "insufficient_tokens"

    def __init__(self, balance: int, cost: int):
        super().__init__(
            f"Insufficient tokens: balance {balance}, cost {cost}",
            details={"balance": balance, "cost": cost},
        )
        self.balance = balance
        self.cost = cost


class DeckNotFoundError(EngineError):
    """The referenced deck is not in the card catalog."""

    status_code = 404
    error_code = "deck_not_found"

    def __init__(self, deck_id: str):
        super().__init__(f"Deck not found: {deck_id}", details={"deck_id": deck_id})
        self.deck_id = deck_id


class CardNotFoundError(EngineError):
    """The referenced card does not belong to the deck."""

    status_code = 404
    error_code = "card_not_found"

    def __init__(self, deck_id: str, card_id: str):
        super().__init__(
            f"Card {card_id} not found in deck {deck_id}",
            details={"deck_id": deck_id, "card_id": card_id},
        )


class SessionNotFoundError(EngineError):
    """No active study session exists for the user, deck and mode."""

    status_code = 404
    error_code = "session_not_found"

    def __init__(self, deck_id: str, mode: str):
        super().__init__(
            f"No {mode} session for deck {deck_id}",
            details={"deck_id": deck_id, "mode": mode},
        )


class TransactionConflictError(EngineError):
    """A concurrent write invalidated the transaction. Retry the whole operation."""

    status_code = 409
    error_code = "transaction_conflict"


class UnknownPowerUpError(EngineError):
    status_code = 400
    error_code = "unknown_power_up"

    def __init__(self, power_up_type: str):
        super().__init__(f"Unknown power-up: {power_up_type}", details={"power_up": power_up_type})


class UnknownShopItemError(EngineError):
    status_code = 400
    error_code = "unknown_shop_item"

    def __init__(self, item_id: str):
        super().__init__(f"Unknown shop item: {item_id}", details={"item_id": item_id})


class InvalidSessionModeError(EngineError):
    status_code = 400
    error_code = "invalid_session_mode"

    def __init__(self, mode: str):
        super().__init__(f"Unknown session mode: {mode}", details={"mode": mode})


class CustomizationLockedError(EngineError):
    """The user tried to equip a cosmetic they have not unlocked."""

    status_code = 403
    error_code = "customization_locked"

    def __init__(self, item_id: str):
        super().__init__(f"Customization not unlocked: {item_id}", details={"item_id": item_id})
