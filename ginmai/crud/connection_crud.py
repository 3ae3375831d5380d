# Join/leave CRUD (row lock + conditional seat update keep the capacity invariant)
# and connection ledger queries

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ginmai.crud.moment_crud import is_expired, require_moment
from ginmai.crud.user_crud import increment_stat, require_user
from ginmai.errors import Conflict, NotFound, Reason
from ginmai.models.base import utc_now
from ginmai.models.connection import ACTIVE_STATUSES, SEATED_STATUSES, Connection, ConnectionStatus
from ginmai.models.moment import OPEN_STATUSES, Moment, MomentStatus
from ginmai.models.user import User


def _claim_seat(db: Session, moment_id: int) -> bool:
    """
    seats_taken += 1 only if a seat is free; flips status to full on the last seat.
    Single compare-and-set statement: the row count says whether the seat was won.
    """
    stmt = (
        update(Moment)
        .where(
            Moment.id == moment_id,
            Moment.status.in_(OPEN_STATUSES),
            Moment.seats_taken < Moment.seats_total,
        )
        .values(
            seats_taken=Moment.seats_taken + 1,
            status=case(
                (Moment.seats_taken + 1 >= Moment.seats_total, MomentStatus.FULL.value),
                else_=MomentStatus.ACTIVE.value,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _release_seat(db: Session, moment_id: int) -> None:
    """seats_taken -= 1 floored at 0; full reverts to active."""
    stmt = (
        update(Moment)
        .where(Moment.id == moment_id, Moment.seats_taken > 0)
        .values(
            seats_taken=Moment.seats_taken - 1,
            status=case(
                (Moment.status == MomentStatus.FULL.value, MomentStatus.ACTIVE.value),
                else_=Moment.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)


def get_connection(db: Session, moment_id: int, user_id: int) -> Optional[Connection]:
    return (
        db.query(Connection)
        .filter(Connection.moment_id == moment_id, Connection.user_id == user_id)
        .first()
    )


def join_moment(
    db: Session,
    moment_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Tuple[Moment, Connection]:
    """
    Join a moment.

    - FOR UPDATE on the moment row serializes joiners on PostgreSQL; the
      conditional seat update is the last word on capacity on every backend.
    - A cancelled connection for the same pair is reactivated, never duplicated.

    Returns the refreshed moment and the confirmed connection.

    ⚠️ Does not commit/rollback. The caller owns the transaction; any raised
    error must roll it back so no partial seat increment survives.
    """
    now = now or utc_now()
    require_user(db, user_id)
    moment = require_moment(db, moment_id, for_update=True)

    if moment.host_id is not None and moment.host_id == user_id:
        raise Conflict(Reason.ALREADY_HOST, "You can't join your own moment")

    existing = get_connection(db, moment_id, user_id)
    if existing is not None and existing.status != ConnectionStatus.CANCELLED.value:
        raise Conflict(Reason.ALREADY_JOINED, "You've already joined this moment")

    if moment.status not in OPEN_STATUSES or is_expired(moment, now):
        raise Conflict(Reason.MOMENT_CLOSED, "This moment is no longer open")

    if not _claim_seat(db, moment_id):
        raise Conflict(Reason.FULL, "This moment is full")

    if existing is not None:
        existing.status = ConnectionStatus.CONFIRMED.value
        existing.joined_at = now
        existing.cancelled_at = None
        existing.arrived_at = None
        existing.running_late = False
        existing.running_late_at = None
        connection = existing
    else:
        connection = Connection(
            moment_id=moment_id,
            user_id=user_id,
            status=ConnectionStatus.CONFIRMED.value,
            joined_at=now,
        )
        try:
            with db.begin_nested():
                db.add(connection)
        except IntegrityError:
            # same user joining concurrently: unique (moment_id, user_id)
            raise Conflict(Reason.ALREADY_JOINED, "You've already joined this moment")

    db.flush()
    db.refresh(moment)
    return moment, connection


def leave_moment(
    db: Session,
    moment_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Tuple[Moment, Connection]:
    """
    Leave a moment: connection -> cancelled, seats_taken -= 1 (floor 0), full -> active.

    ⚠️ Does not commit/rollback. The caller owns the transaction.
    """
    now = now or utc_now()
    moment = require_moment(db, moment_id, for_update=True)

    if moment.status in (MomentStatus.CANCELLED.value, MomentStatus.COMPLETED.value):
        raise Conflict(Reason.MOMENT_CLOSED, "This moment is closed")

    connection = (
        db.query(Connection)
        .filter(
            Connection.moment_id == moment_id,
            Connection.user_id == user_id,
            Connection.status.in_(SEATED_STATUSES),
        )
        .first()
    )
    if connection is None:
        raise NotFound(Reason.CONNECTION_NOT_FOUND, "You haven't joined this moment")

    connection.status = ConnectionStatus.CANCELLED.value
    connection.cancelled_at = now
    db.flush()

    _release_seat(db, moment_id)
    db.refresh(moment)
    return moment, connection


def has_active_connection(db: Session, user_id: int, moment_id: int) -> bool:
    """True iff a confirmed / arrived / completed connection exists."""
    row = (
        db.query(Connection.id)
        .filter(
            Connection.moment_id == moment_id,
            Connection.user_id == user_id,
            Connection.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )
    return row is not None


def list_user_connections(db: Session, user_id: int) -> List[Connection]:
    """All non-cancelled connections of a user, most recent join first."""
    return (
        db.query(Connection)
        .filter(
            Connection.user_id == user_id,
            Connection.status != ConnectionStatus.CANCELLED.value,
        )
        .order_by(Connection.joined_at.desc(), Connection.id.desc())
        .all()
    )


def _require_seated(db: Session, moment_id: int, user_id: int) -> Connection:
    connection = (
        db.query(Connection)
        .filter(
            Connection.moment_id == moment_id,
            Connection.user_id == user_id,
            Connection.status.in_(SEATED_STATUSES),
        )
        .first()
    )
    if connection is None:
        raise NotFound(Reason.CONNECTION_NOT_FOUND, "You haven't joined this moment")
    return connection


def mark_running_late(
    db: Session,
    moment_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Tuple[Connection, bool]:
    """
    running_late = true (+ timestamp). Status is unchanged.
    Returns (connection, first_time); the host is only notified the first time.
    """
    connection = _require_seated(db, moment_id, user_id)
    if connection.running_late:
        return connection, False
    connection.running_late = True
    connection.running_late_at = now or utc_now()
    db.flush()
    return connection, True


def mark_arrived(
    db: Session,
    moment_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Tuple[Connection, bool]:
    """confirmed -> arrived. Returns (connection, changed)."""
    connection = _require_seated(db, moment_id, user_id)
    if connection.status == ConnectionStatus.ARRIVED.value:
        return connection, False
    connection.status = ConnectionStatus.ARRIVED.value
    connection.arrived_at = now or utc_now()
    db.flush()
    return connection, True


def complete_connection(db: Session, moment_id: int, user_id: int) -> Tuple[Connection, bool]:
    """
    Terminal completed state after the feedback flow. Idempotent: a second call
    returns (connection, False). The first transition counts a joined meal.
    """
    connection = get_connection(db, moment_id, user_id)
    if connection is None:
        raise NotFound(Reason.CONNECTION_NOT_FOUND, "You haven't joined this moment")
    if connection.status == ConnectionStatus.COMPLETED.value:
        return connection, False
    if connection.status not in SEATED_STATUSES:
        raise NotFound(Reason.CONNECTION_NOT_FOUND, "No active connection to complete")

    connection.status = ConnectionStatus.COMPLETED.value
    increment_stat(db, user_id, "meals_joined")
    db.flush()
    return connection, True


def list_guests(db: Session, moment_id: int) -> List[Tuple[Connection, str]]:
    """Seated guests of a moment with their display names, in join order."""
    rows = (
        db.query(Connection, User.first_name)
        .join(User, User.id == Connection.user_id)
        .filter(
            Connection.moment_id == moment_id,
            Connection.status.in_(SEATED_STATUSES),
        )
        .order_by(Connection.joined_at.asc(), Connection.id.asc())
        .all()
    )
    return [(c, name or "Guest") for c, name in rows]
