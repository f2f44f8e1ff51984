"""Transaction boundary for read-modify-write operations.

Token balances, purchase counts and progress rows carry an optimistic version
column. When two requests race on the same row, the loser's flush raises
StaleDataError (or a duplicate-key IntegrityError when both tried to create
the same default row). run_transaction rolls back and re-runs the whole unit
of work so every derived value is recomputed from fresh reads.
"""
from typing import Callable, Optional, TypeVar
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from bloomquest.config import settings
from bloomquest.errors import TransactionConflictError
from bloomquest.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# SQLite and PostgreSQL wording for a primary key or unique collision
DUPLICATE_KEY_MESSAGES = ("unique constraint failed", "duplicate key value")


def is_duplicate_key(error: IntegrityError) -> bool:
    """Whether the violation is a key collision rather than a broken constraint."""
    message = str(error.orig).lower()
    return any(token in message for token in DUPLICATE_KEY_MESSAGES)


def run_transaction(
    db: Session,
    work: Callable[[Session], T],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run `work` and commit it as one atomic unit.

    Args:
        db: Database session
        work: Callable performing all reads and writes; must be safe to re-run
        max_attempts: Conflict retries before giving up (default from settings)

    Returns:
        Whatever `work` returns

    Raises:
        TransactionConflictError: Conflicts persisted through every attempt
        IntegrityError: A check or foreign-key constraint was violated
        Exception: Anything else `work` or the store raises, after rollback
    """
    attempts = max_attempts or settings.MAX_TRANSACTION_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            result = work(db)
            db.commit()
            return result
        except IntegrityError as e:
            db.rollback()
            if not is_duplicate_key(e):
                logger.error(f"Constraint violation: {e.orig}")
                raise
            conflict = e
        except StaleDataError as e:
            db.rollback()
            conflict = e
        except Exception:
            db.rollback()
            raise

        logger.warning(f"Transaction conflict on attempt {attempt}/{attempts}: {conflict}")
        if attempt == attempts:
            raise TransactionConflictError(
                "Concurrent update detected, retry the operation",
                details={"attempts": attempts},
            ) from conflict

    # Unreachable: the loop either returns or raises
    raise TransactionConflictError("Transaction did not complete")
