# Transaction ownership for service operations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ginmai.errors import DomainError, Outcome, StoreUnavailable

log = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(db: Session, op: Callable[[], Outcome[T]], name: str) -> Outcome[T]:
    """
    Run op and commit, or roll back everything.

    - DomainError (full, already joined, ...) -> rollback, returned as a failed Outcome.
    - The store being unreachable -> rollback, StoreUnavailable raised for the caller to retry.
    - Anything else -> rollback and re-raise.
    """
    try:
        outcome = op()
        db.commit()
        return outcome
    except DomainError as e:
        db.rollback()
        log.info("%s rejected: %s (%s)", name, e.reason.value, e.message)
        return Outcome.fail(e)
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        log.error("%s failed: store unavailable", name, exc_info=True)
        raise StoreUnavailable(f"{name}: store unavailable") from e
    except Exception:
        db.rollback()
        log.exception("%s failed", name)
        raise
