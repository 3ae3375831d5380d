# User profile + reliability

from typing import Optional

from sqlalchemy.orm import Session

from ginmai.crud import user_crud
from ginmai.errors import Outcome
from ginmai.schemas.user import ReliabilityOut, UserOut
from ginmai.services import reliability
from ginmai.services.transaction import run_in_transaction


def upsert_user(db: Session, user_id: int, first_name: str, push_token: Optional[str] = None) -> Outcome[UserOut]:
    def op() -> Outcome[UserOut]:
        user = user_crud.upsert_user(db, user_id, first_name, push_token)
        return Outcome(value=UserOut.model_validate(user))

    return run_in_transaction(db, op, "upsert_user")


def get_reliability(db: Session, user_id: int) -> Outcome[ReliabilityOut]:
    """Derived on read from meals_hosted / meals_joined / no_shows."""

    def op() -> Outcome[ReliabilityOut]:
        user = user_crud.require_user(db, user_id)
        r = reliability.score(user.meals_hosted or 0, user.meals_joined or 0, user.no_shows or 0)
        return Outcome(
            value=ReliabilityOut(
                user_id=user.id,
                meals_completed=r.meals_completed,
                no_shows=r.no_shows,
                total_meals=r.total_meals,
                score=r.score,
                percentage=r.percentage,
                label=r.label,
                badge=r.badge,
                description=r.description,
                show_warning=r.should_show_warning,
            )
        )

    return run_in_transaction(db, op, "get_reliability")
