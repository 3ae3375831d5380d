# Feedback + eat-again match CRUD

from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ginmai.crud.moment_crud import require_moment
from ginmai.errors import Conflict, Reason, ValidationFailed
from ginmai.models.connection import ACTIVE_STATUSES, Connection
from ginmai.models.feedback import Feedback, Rating
from ginmai.models.match import EatAgainMatch, canonical_pair
from ginmai.models.moment import Moment
from ginmai.models.user import User

RATINGS = {r.value for r in Rating}


def _took_part(db: Session, moment: Moment, user_id: int) -> bool:
    """Host, or a confirmed / arrived / completed connection."""
    if moment.host_id is not None and moment.host_id == user_id:
        return True
    row = (
        db.query(Connection.id)
        .filter(
            Connection.moment_id == moment.id,
            Connection.user_id == user_id,
            Connection.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )
    return row is not None


def _find_feedback(db: Session, moment_id: int, from_user: int, about_user: int) -> Optional[Feedback]:
    return (
        db.query(Feedback)
        .filter(
            Feedback.moment_id == moment_id,
            Feedback.from_user == from_user,
            Feedback.about_user == about_user,
        )
        .first()
    )


def submit_feedback(
    db: Session,
    moment_id: int,
    from_user: int,
    about_user: int,
    rating: str,
    eat_again: Optional[bool] = None,
    note: Optional[str] = None,
) -> Tuple[Feedback, Optional[EatAgainMatch], bool]:
    """
    Store one private rating. Both users must have shared the moment.

    When eat_again is true the reciprocal check runs in the same transaction.
    Returns (feedback, match or None, match_created).
    """
    if rating not in RATINGS:
        raise ValidationFailed(Reason.INVALID_INPUT, f"Unknown rating: {rating}")
    if from_user == about_user:
        raise ValidationFailed(Reason.INVALID_INPUT, "You can't leave feedback about yourself")

    moment = require_moment(db, moment_id)
    if not _took_part(db, moment, from_user) or not _took_part(db, moment, about_user):
        raise Conflict(Reason.NOT_CONNECTED, "You can only rate people you shared this meal with")

    if _find_feedback(db, moment_id, from_user, about_user) is not None:
        raise Conflict(Reason.DUPLICATE_FEEDBACK, "You already left feedback for this person")

    feedback = Feedback(
        moment_id=moment_id,
        from_user=from_user,
        about_user=about_user,
        rating=rating,
        eat_again=eat_again,
        note=note or None,
    )
    try:
        with db.begin_nested():
            db.add(feedback)
    except IntegrityError:
        raise Conflict(Reason.DUPLICATE_FEEDBACK, "You already left feedback for this person")

    match, created = None, False
    if eat_again:
        match, created = detect_and_record_match(db, moment_id, from_user, about_user)
    return feedback, match, created


def _find_match(db: Session, user_a: int, user_b: int, moment_id: int) -> Optional[EatAgainMatch]:
    return (
        db.query(EatAgainMatch)
        .filter(
            EatAgainMatch.user_a_id == user_a,
            EatAgainMatch.user_b_id == user_b,
            EatAgainMatch.moment_id == moment_id,
        )
        .first()
    )


def _wants_again(db: Session, moment_id: int, from_user: int, about_user: int) -> bool:
    row = (
        db.query(Feedback.id)
        .filter(
            Feedback.moment_id == moment_id,
            Feedback.from_user == from_user,
            Feedback.about_user == about_user,
            Feedback.eat_again.is_(True),
        )
        .first()
    )
    return row is not None


def detect_and_record_match(
    db: Session,
    moment_id: int,
    user_a: int,
    user_b: int,
) -> Tuple[Optional[EatAgainMatch], bool]:
    """
    Mutual eat_again for the same moment -> one match row for the canonical pair.

    Returns (match, created). (None, False) while either side has not said yes.
    An existing row or a unique violation means "already matched": (match, False).
    No time limit on reciprocation.
    """
    if not _wants_again(db, moment_id, user_b, user_a) or not _wants_again(db, moment_id, user_a, user_b):
        return None, False

    lo, hi = canonical_pair(user_a, user_b)
    existing = _find_match(db, lo, hi, moment_id)
    if existing is not None:
        return existing, False

    match = EatAgainMatch(user_a_id=lo, user_b_id=hi, moment_id=moment_id)
    try:
        with db.begin_nested():
            db.add(match)
    except IntegrityError:
        # the other side recorded it first
        return _find_match(db, lo, hi, moment_id), False
    return match, True


def list_matches(db: Session, user_id: int) -> List[Tuple[int, str, int, object, int]]:
    """
    Matched users of user_id, most recent match first.
    Each row: (other_user_id, first_name, moment_id, matched_at, meals_together).
    """
    matches = (
        db.query(EatAgainMatch)
        .filter(or_(EatAgainMatch.user_a_id == user_id, EatAgainMatch.user_b_id == user_id))
        .order_by(EatAgainMatch.matched_at.desc(), EatAgainMatch.id.desc())
        .all()
    )

    latest: dict[int, EatAgainMatch] = {}
    counts: dict[int, int] = {}
    for m in matches:
        other = m.user_b_id if m.user_a_id == user_id else m.user_a_id
        counts[other] = counts.get(other, 0) + 1
        if other not in latest:
            latest[other] = m

    if not latest:
        return []

    names = dict(db.query(User.id, User.first_name).filter(User.id.in_(list(latest))).all())
    return [
        (other, names.get(other) or "Someone", m.moment_id, m.matched_at, counts[other])
        for other, m in latest.items()
    ]
