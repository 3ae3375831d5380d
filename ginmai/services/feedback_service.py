# Feedback & matching: post-meal ratings, mutual eat-again detection, completion

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ginmai.crud import connection_crud, feedback_crud
from ginmai.crud.user_crud import get_user
from ginmai.errors import Outcome
from ginmai.integrations import expo_push
from ginmai.realtime.pubsub import UPDATE, connection_change
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.feedback import FeedbackOut, FeedbackResult, MatchOut
from ginmai.services.transaction import run_in_transaction

log = logging.getLogger(__name__)


def _match_pushes(db: Session, user_a: int, user_b: int) -> List[expo_push.PushMessage]:
    """One "You matched!" push to each side that has a token."""
    a, b = get_user(db, user_a), get_user(db, user_b)
    if a is None or b is None:
        return []
    pushes = []
    if a.push_token:
        pushes.append(expo_push.eat_again_match(a.push_token, b.first_name))
    if b.push_token:
        pushes.append(expo_push.eat_again_match(b.push_token, a.first_name))
    return pushes


def submit_feedback(
    db: Session,
    moment_id: int,
    from_user: int,
    about_user: int,
    rating: str,
    eat_again: Optional[bool] = None,
    note: Optional[str] = None,
) -> Outcome[FeedbackResult]:
    def op() -> Outcome[FeedbackResult]:
        feedback, match, created = feedback_crud.submit_feedback(
            db, moment_id, from_user, about_user, rating, eat_again=eat_again, note=note
        )
        pushes = _match_pushes(db, from_user, about_user) if created else []
        if created:
            log.info("eat-again match: users %s and %s (moment %s)", from_user, about_user, moment_id)
        return Outcome(
            value=FeedbackResult(feedback=FeedbackOut.model_validate(feedback), matched=match is not None),
            pushes=pushes,
        )

    return run_in_transaction(db, op, "submit_feedback")


def detect_and_record_match(db: Session, moment_id: int, user_a: int, user_b: int) -> Outcome[bool]:
    """
    value is True when the pair is matched for this moment (new or existing).
    Only a newly created row notifies both sides.
    """

    def op() -> Outcome[bool]:
        match, created = feedback_crud.detect_and_record_match(db, moment_id, user_a, user_b)
        pushes = _match_pushes(db, user_a, user_b) if created else []
        return Outcome(value=match is not None, pushes=pushes)

    return run_in_transaction(db, op, "detect_and_record_match")


def complete_connection(db: Session, moment_id: int, user_id: int) -> Outcome[ConnectionOut]:
    """Terminal completed state; calling twice is a no-op success."""

    def op() -> Outcome[ConnectionOut]:
        connection, changed = connection_crud.complete_connection(db, moment_id, user_id)
        changes = [connection_change(UPDATE, connection)] if changed else []
        return Outcome(value=ConnectionOut.model_validate(connection), changes=changes)

    return run_in_transaction(db, op, "complete_connection")


def list_matches(db: Session, user_id: int) -> Outcome[List[MatchOut]]:
    def op() -> Outcome[List[MatchOut]]:
        rows = feedback_crud.list_matches(db, user_id)
        return Outcome(
            value=[
                MatchOut(
                    user_id=other,
                    first_name=name,
                    moment_id=moment_id,
                    matched_at=matched_at,
                    meals_together=count,
                )
                for other, name, moment_id, matched_at, count in rows
            ]
        )

    return run_in_transaction(db, op, "list_matches")
