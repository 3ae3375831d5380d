# Moment API: create / list / join / leave / cancel, ledger + feedback endpoints, SSE streams

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ginmai.config import NEARBY_LIMIT, NEARBY_RADIUS_KM
from ginmai.database import get_db
from ginmai.identity import require_user_id
from ginmai.integrations.expo_push import ExpoPushSender, get_push_sender
from ginmai.integrations.kakao_local import reverse_geocode
from ginmai.realtime.pubsub import MOMENTS_CHANNEL, ChangePublisher, connections_channel, get_publisher, stream_changes
from ginmai.routers.responses import unwrap
from ginmai.schemas.connection import ConnectionOut, GuestOut
from ginmai.schemas.feedback import FeedbackCreate, FeedbackResult
from ginmai.schemas.moment import MomentActionResult, MomentCreate, MomentOut
from ginmai.services import feedback_service, ledger_service, moment_service
from ginmai.services.effects import dispatch

router = APIRouter(prefix="/moments", tags=["Moments"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class MatchCheckBody(BaseModel):
    about_user: int


class MatchCheckResult(BaseModel):
    matched: bool


def get_geocoder():
    """FastAPI dependency for reverse geocoding; tests override it."""
    return reverse_geocode


@router.post("", response_model=MomentOut)
async def post_moment(
    body: MomentCreate,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    geocode=Depends(get_geocoder),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MomentOut:
    """Create a moment. Without place/area name the area label comes from reverse geocoding."""
    area_name = body.area_name
    if not body.place_name and not area_name:
        area_name = await geocode(body.lat, body.lng)

    outcome = moment_service.create_moment(
        db,
        host_id=user_id,
        starts_at=body.starts_at,
        duration=body.duration,
        lat=body.lat,
        lng=body.lng,
        seats_total=body.seats_total,
        note=body.note,
        place_name=body.place_name,
        area_name=area_name,
        host_name=body.host_name,
    )
    moment = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return moment


@router.get("", response_model=List[MomentOut])
def get_active_moments(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(NEARBY_RADIUS_KM, ge=0.1),
    include_full: bool = Query(False),
    limit: int = Query(NEARBY_LIMIT, ge=1, le=200),
    db: Session = Depends(get_db),
) -> List[MomentOut]:
    """Active, unexpired moments (nearest radius filter if lat/lng given), soonest first."""
    return unwrap(
        moment_service.list_active(
            db, lat=lat, lng=lng, radius_km=radius_km, include_full=include_full, limit=limit
        )
    )


@router.get("/stream")
async def get_moments_stream():
    """SSE: every moments row change (INSERT / UPDATE / DELETE)."""
    return StreamingResponse(stream_changes(MOMENTS_CHANNEL), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/{moment_id}", response_model=MomentOut)
def get_moment(moment_id: int, db: Session = Depends(get_db)) -> MomentOut:
    return unwrap(moment_service.get_moment(db, moment_id))


@router.post("/{moment_id}/join", response_model=MomentActionResult)
async def post_join(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MomentActionResult:
    """Join. 409 with reason full / already_joined / already_host / moment_closed."""
    outcome = moment_service.join(db, moment_id, user_id)
    moment = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return MomentActionResult(message="joined", moment=moment)


@router.delete("/{moment_id}/leave", response_model=MomentActionResult)
async def delete_leave(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MomentActionResult:
    outcome = moment_service.leave(db, moment_id, user_id)
    moment = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return MomentActionResult(message="left", moment=moment)


@router.post("/{moment_id}/cancel", response_model=MomentActionResult)
async def post_cancel(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MomentActionResult:
    outcome = moment_service.cancel(db, moment_id, user_id)
    moment = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return MomentActionResult(message="cancelled", moment=moment)


@router.post("/{moment_id}/complete", response_model=MomentActionResult)
async def post_complete(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MomentActionResult:
    outcome = moment_service.complete(db, moment_id, user_id)
    moment = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return MomentActionResult(message="completed", moment=moment)


@router.get("/{moment_id}/guests", response_model=List[GuestOut])
def get_guests(moment_id: int, db: Session = Depends(get_db)) -> List[GuestOut]:
    return unwrap(ledger_service.list_guests(db, moment_id))


@router.get("/{moment_id}/connections/stream")
async def get_connections_stream(moment_id: int):
    """SSE: connection row changes of one moment (host live view)."""
    return StreamingResponse(
        stream_changes(connections_channel(moment_id)), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/{moment_id}/running-late", response_model=ConnectionOut)
async def post_running_late(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> ConnectionOut:
    outcome = ledger_service.mark_running_late(db, moment_id, user_id)
    connection = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return connection


@router.post("/{moment_id}/arrived", response_model=ConnectionOut)
async def post_arrived(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> ConnectionOut:
    outcome = ledger_service.mark_arrived(db, moment_id, user_id)
    connection = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return connection


@router.post("/{moment_id}/feedback", response_model=FeedbackResult)
async def post_feedback(
    moment_id: int,
    body: FeedbackCreate,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> FeedbackResult:
    """Private rating of another participant. matched=true once both said eat again."""
    outcome = feedback_service.submit_feedback(
        db,
        moment_id,
        from_user=user_id,
        about_user=body.about_user,
        rating=body.rating,
        eat_again=body.eat_again,
        note=body.note,
    )
    result = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return result


@router.post("/{moment_id}/match-check", response_model=MatchCheckResult)
async def post_match_check(
    moment_id: int,
    body: MatchCheckBody,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> MatchCheckResult:
    """Re-run mutual eat-again detection; idempotent."""
    outcome = feedback_service.detect_and_record_match(db, moment_id, user_id, body.about_user)
    matched = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return MatchCheckResult(matched=matched)


@router.post("/{moment_id}/connection/complete", response_model=ConnectionOut)
async def post_complete_connection(
    moment_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ChangePublisher = Depends(get_publisher),
    push_sender: ExpoPushSender = Depends(get_push_sender),
) -> ConnectionOut:
    """Called when the guest finishes the feedback flow."""
    outcome = feedback_service.complete_connection(db, moment_id, user_id)
    connection = unwrap(outcome)
    await dispatch(outcome, publisher, push_sender)
    return connection
