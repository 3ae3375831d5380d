# Outcome -> HTTP response mapping shared by routers

from typing import TypeVar

from fastapi import HTTPException

from ginmai.errors import Outcome

T = TypeVar("T")


def unwrap(outcome: Outcome[T]) -> T:
    """Value of a successful outcome, else HTTPException with {kind, reason, message}."""
    if not outcome.ok:
        raise HTTPException(status_code=outcome.error.status_code, detail=outcome.error.to_detail())
    return outcome.value
