# User profile CRUD

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ginmai.errors import NotFound, Reason
from ginmai.models.user import User


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def require_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFound(Reason.USER_NOT_FOUND, "User not found")
    return user


def upsert_user(db: Session, user_id: int, first_name: str, push_token: Optional[str]) -> User:
    """Create or update the profile for an identity-provider user id. Caller commits."""
    user = get_user(db, user_id)
    if user is None:
        user = User(id=user_id, first_name=first_name, push_token=push_token)
        db.add(user)
    else:
        user.first_name = first_name
        if push_token is not None:
            user.push_token = push_token
    db.flush()
    return user


def increment_stat(db: Session, user_id: int, column: str) -> None:
    """meals_hosted / meals_joined / no_shows += 1 as a single UPDATE."""
    col = getattr(User, column)
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values({col: col + 1})
        .execution_options(synchronize_session=False)
    )
