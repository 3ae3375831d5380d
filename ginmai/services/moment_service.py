# Moment store operations: one transaction each, typed Outcome, effects dispatched after commit

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ginmai.crud import connection_crud, moment_crud
from ginmai.crud.user_crud import get_user
from ginmai.errors import Outcome
from ginmai.integrations import expo_push
from ginmai.models.base import utc_now
from ginmai.realtime.pubsub import INSERT, UPDATE, connection_change, moment_change
from ginmai.schemas.moment import MomentOut
from ginmai.services.transaction import run_in_transaction

log = logging.getLogger(__name__)


def _out(moment, distance_km: Optional[float] = None) -> MomentOut:
    out = MomentOut.model_validate(moment)
    out.distance_km = distance_km
    return out


def _host_push(db: Session, moment, build, guest_id: int) -> List[expo_push.PushMessage]:
    """Push for the host about a guest, if the host has a token."""
    if moment.host_id is None:
        return []
    host = get_user(db, moment.host_id)
    if host is None or not host.push_token:
        return []
    guest = get_user(db, guest_id)
    guest_name = guest.first_name if guest is not None else "Guest"
    return [build(host.push_token, guest_name, moment.id)]


def create_moment(
    db: Session,
    host_id: Optional[int],
    starts_at: Optional[datetime],
    duration: str,
    lat: float,
    lng: float,
    seats_total: int,
    note: Optional[str] = None,
    place_name: Optional[str] = None,
    area_name: Optional[str] = None,
    host_name: Optional[str] = None,
) -> Outcome[MomentOut]:
    """Create a moment for an authenticated host. Published as INSERT on the moments channel."""

    def op() -> Outcome[MomentOut]:
        moment = moment_crud.create_moment(
            db,
            host_id=host_id,
            host_name=host_name,
            starts_at=starts_at or utc_now(),
            duration=duration,
            lat=lat,
            lng=lng,
            seats_total=seats_total,
            note=note,
            place_name=place_name,
            area_name=area_name,
        )
        log.info("moment %s created by host %s (%s seats)", moment.id, host_id, seats_total)
        return Outcome(value=_out(moment), changes=[moment_change(INSERT, moment)])

    return run_in_transaction(db, op, "create_moment")


def get_moment(db: Session, moment_id: int) -> Outcome[MomentOut]:
    def op() -> Outcome[MomentOut]:
        return Outcome(value=_out(moment_crud.require_moment(db, moment_id)))

    return run_in_transaction(db, op, "get_moment")


def list_active(
    db: Session,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: float = 5.0,
    include_full: bool = False,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> Outcome[List[MomentOut]]:
    """Unexpired active (and optionally full) moments near a point, soonest first."""

    def op() -> Outcome[List[MomentOut]]:
        rows = moment_crud.list_active_moments(
            db, lat=lat, lng=lng, radius_km=radius_km, include_full=include_full, limit=limit, now=now
        )
        return Outcome(value=[_out(m, d) for m, d in rows])

    return run_in_transaction(db, op, "list_active")


def join(db: Session, moment_id: int, user_id: int, now: Optional[datetime] = None) -> Outcome[MomentOut]:
    """
    Take a seat. Exactly one of two concurrent joiners wins the last seat;
    a failed join leaves seats and connections untouched (full rollback).
    """

    def op() -> Outcome[MomentOut]:
        existed = connection_crud.get_connection(db, moment_id, user_id) is not None
        moment, connection = connection_crud.join_moment(db, moment_id, user_id, now=now)
        log.info("user %s joined moment %s (%s/%s)", user_id, moment_id, moment.seats_taken, moment.seats_total)
        return Outcome(
            value=_out(moment),
            changes=[
                moment_change(UPDATE, moment),
                connection_change(UPDATE if existed else INSERT, connection),
            ],
            pushes=_host_push(db, moment, expo_push.guest_joined, user_id),
        )

    return run_in_transaction(db, op, "join")


def leave(db: Session, moment_id: int, user_id: int, now: Optional[datetime] = None) -> Outcome[MomentOut]:
    """Give the seat back. full reverts to active."""

    def op() -> Outcome[MomentOut]:
        moment, connection = connection_crud.leave_moment(db, moment_id, user_id, now=now)
        log.info("user %s left moment %s (%s/%s)", user_id, moment_id, moment.seats_taken, moment.seats_total)
        return Outcome(
            value=_out(moment),
            changes=[moment_change(UPDATE, moment), connection_change(UPDATE, connection)],
            pushes=_host_push(db, moment, expo_push.guest_cancelled, user_id),
        )

    return run_in_transaction(db, op, "leave")


def cancel(db: Session, moment_id: int, by_host_id: int) -> Outcome[MomentOut]:
    """Host cancels (terminal). Subscribers drop it from their active view."""

    def op() -> Outcome[MomentOut]:
        moment, changed = moment_crud.cancel_moment(db, moment_id, by_host_id)
        changes = [moment_change(UPDATE, moment)] if changed else []
        if changed:
            log.info("moment %s cancelled by host %s", moment_id, by_host_id)
        return Outcome(value=_out(moment), changes=changes)

    return run_in_transaction(db, op, "cancel")


def complete(db: Session, moment_id: int, by_host_id: int) -> Outcome[MomentOut]:
    """Host marks the meal as done."""

    def op() -> Outcome[MomentOut]:
        moment, changed = moment_crud.complete_moment(db, moment_id, by_host_id)
        changes = [moment_change(UPDATE, moment)] if changed else []
        return Outcome(value=_out(moment), changes=changes)

    return run_in_transaction(db, op, "complete")


def expire(db: Session, now: Optional[datetime] = None) -> Outcome[List[int]]:
    """Background sweep: expired active/full moments -> completed."""

    def op() -> Outcome[List[int]]:
        expired = moment_crud.expire_moments(db, now=now)
        return Outcome(
            value=[m.id for m in expired],
            changes=[moment_change(UPDATE, m) for m in expired],
        )

    return run_in_transaction(db, op, "expire")
