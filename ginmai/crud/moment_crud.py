# Moment CRUD: create, lookup, nearby listing, host cancel/complete, expiry sweep

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ginmai.crud.user_crud import increment_stat, require_user
from ginmai.errors import Conflict, NotFound, Reason, Unauthorized, ValidationFailed
from ginmai.models.base import as_utc, utc_now
from ginmai.models.moment import (
    DURATION_MINUTES,
    NOTE_MAX_LEN,
    OPEN_STATUSES,
    SEATS_MAX,
    SEATS_MIN,
    Moment,
    MomentStatus,
    compute_expires_at,
)
from ginmai.services.geo import bounding_box, haversine_m


def _validate_new_moment(
    host_id: Optional[int],
    duration: str,
    lat: float,
    lng: float,
    seats_total: int,
    note: Optional[str],
) -> None:
    if host_id is None:
        # the column allows NULL, anonymous moments are still refused
        raise ValidationFailed(Reason.MISSING_HOST, "Sign in to create a moment")
    if duration not in DURATION_MINUTES:
        raise ValidationFailed(Reason.INVALID_INPUT, f"Unknown duration: {duration}")
    if not (SEATS_MIN <= seats_total <= SEATS_MAX):
        raise ValidationFailed(Reason.INVALID_INPUT, f"Seats must be between {SEATS_MIN} and {SEATS_MAX}")
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise ValidationFailed(Reason.INVALID_INPUT, "Location is out of range")
    if note is not None and len(note) > NOTE_MAX_LEN:
        raise ValidationFailed(Reason.INVALID_INPUT, f"Note must be {NOTE_MAX_LEN} characters or less")


def create_moment(
    db: Session,
    host_id: Optional[int],
    host_name: Optional[str],
    starts_at: datetime,
    duration: str,
    lat: float,
    lng: float,
    seats_total: int,
    note: Optional[str] = None,
    place_name: Optional[str] = None,
    area_name: Optional[str] = None,
) -> Moment:
    """
    Insert a new moment (seats_taken=0, status=active).
    expires_at = starts_at + duration + 1h.

    Does not commit; the caller owns the transaction.
    """
    _validate_new_moment(host_id, duration, lat, lng, seats_total, note)
    host = require_user(db, host_id)
    name = (host_name or host.first_name or "").strip()
    if not name:
        raise ValidationFailed(Reason.INVALID_INPUT, "Host name is required")

    starts_at = as_utc(starts_at)
    moment = Moment(
        host_id=host_id,
        host_name=name,
        starts_at=starts_at,
        duration=duration,
        expires_at=compute_expires_at(starts_at, duration),
        lat=lat,
        lng=lng,
        place_name=place_name or None,
        area_name=area_name or None,
        seats_total=seats_total,
        seats_taken=0,
        note=note or None,
        status=MomentStatus.ACTIVE.value,
    )
    db.add(moment)
    db.flush()
    db.refresh(moment)
    return moment


def get_moment(db: Session, moment_id: int) -> Optional[Moment]:
    return db.query(Moment).filter(Moment.id == moment_id).first()


def require_moment(db: Session, moment_id: int, for_update: bool = False) -> Moment:
    """Load a moment or raise NotFound. for_update=True locks the row (FOR UPDATE)."""
    q = db.query(Moment).filter(Moment.id == moment_id)
    if for_update:
        q = q.with_for_update()
    moment = q.first()
    if moment is None:
        raise NotFound(Reason.MOMENT_NOT_FOUND, "Moment not found")
    return moment


def is_expired(moment: Moment, now: Optional[datetime] = None) -> bool:
    return as_utc(moment.expires_at) <= (now or utc_now())


def list_active_moments(
    db: Session,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: float = 5.0,
    include_full: bool = False,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> List[Tuple[Moment, Optional[float]]]:
    """
    Active (optionally also full), unexpired moments, soonest starts_at first.

    Expiry is applied here at query time regardless of the stored status.
    With a center (lat, lng) the result is limited to radius_km and each row
    carries its distance in km; without one the distance is None.
    """
    now = now or utc_now()
    statuses = OPEN_STATUSES if include_full else (MomentStatus.ACTIVE.value,)
    q = db.query(Moment).filter(Moment.status.in_(statuses), Moment.expires_at > now)

    if lat is not None and lng is not None:
        min_lat, min_lng, max_lat, max_lng = bounding_box(lat, lng, radius_km)
        q = q.filter(
            Moment.lat.between(min_lat, max_lat),
            Moment.lng.between(min_lng, max_lng),
        )

    q = q.order_by(Moment.starts_at.asc(), Moment.id.asc())

    results: List[Tuple[Moment, Optional[float]]] = []
    for moment in q.all():
        distance_km = None
        if lat is not None and lng is not None:
            distance_km = haversine_m(lat, lng, moment.lat, moment.lng) / 1000.0
            if distance_km > radius_km:
                continue
            distance_km = round(distance_km, 6)
        results.append((moment, distance_km))
        if len(results) >= limit:
            break
    return results


def _require_host(moment: Moment, by_host_id: int) -> None:
    if moment.host_id is None or moment.host_id != by_host_id:
        raise Unauthorized(Reason.NOT_HOST, "Only the host can do this")


def cancel_moment(db: Session, moment_id: int, by_host_id: int) -> Tuple[Moment, bool]:
    """
    Host cancels. Terminal: no more joins/leaves. Existing connections keep their status.

    Returns (moment, changed); cancelling twice is a no-op.
    """
    moment = require_moment(db, moment_id, for_update=True)
    _require_host(moment, by_host_id)

    if moment.status == MomentStatus.CANCELLED.value:
        return moment, False
    if moment.status == MomentStatus.COMPLETED.value:
        raise Conflict(Reason.MOMENT_CLOSED, "This moment has already finished")

    moment.status = MomentStatus.CANCELLED.value
    db.flush()
    return moment, True


def complete_moment(db: Session, moment_id: int, by_host_id: int) -> Tuple[Moment, bool]:
    """Host closes the meal: status completed, meals_hosted += 1. Idempotent."""
    moment = require_moment(db, moment_id, for_update=True)
    _require_host(moment, by_host_id)

    if moment.status == MomentStatus.COMPLETED.value:
        return moment, False
    if moment.status == MomentStatus.CANCELLED.value:
        raise Conflict(Reason.MOMENT_CLOSED, "This moment was cancelled")

    moment.status = MomentStatus.COMPLETED.value
    increment_stat(db, moment.host_id, "meals_hosted")
    db.flush()
    return moment, True


def expire_moments(db: Session, now: Optional[datetime] = None) -> List[Moment]:
    """
    Rewrite expired active/full moments to completed (optional background sweep).
    Each host is credited a hosted meal, as with complete_moment.
    """
    now = now or utc_now()
    expired = (
        db.query(Moment)
        .filter(Moment.status.in_(OPEN_STATUSES), Moment.expires_at <= now)
        .order_by(Moment.id.asc())
        .with_for_update()
        .all()
    )
    for moment in expired:
        moment.status = MomentStatus.COMPLETED.value
        if moment.host_id is not None:
            increment_stat(db, moment.host_id, "meals_hosted")
    db.flush()
    return expired
