# Connection ledger operations (participation records)

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ginmai.crud import connection_crud, moment_crud
from ginmai.crud.user_crud import get_user
from ginmai.errors import Outcome
from ginmai.integrations import expo_push
from ginmai.realtime.pubsub import UPDATE, connection_change
from ginmai.schemas.connection import ConnectionOut, GuestOut
from ginmai.services.transaction import run_in_transaction


def _notify_host(db: Session, moment_id: int, build, guest_id: int) -> List[expo_push.PushMessage]:
    moment = moment_crud.get_moment(db, moment_id)
    if moment is None or moment.host_id is None:
        return []
    host = get_user(db, moment.host_id)
    if host is None or not host.push_token:
        return []
    guest = get_user(db, guest_id)
    return [build(host.push_token, guest.first_name if guest else "Guest", moment_id)]


def has_active_connection(db: Session, user_id: int, moment_id: int) -> Outcome[bool]:
    def op() -> Outcome[bool]:
        return Outcome(value=connection_crud.has_active_connection(db, user_id, moment_id))

    return run_in_transaction(db, op, "has_active_connection")


def list_user_connections(db: Session, user_id: int) -> Outcome[List[ConnectionOut]]:
    def op() -> Outcome[List[ConnectionOut]]:
        rows = connection_crud.list_user_connections(db, user_id)
        return Outcome(value=[ConnectionOut.model_validate(c) for c in rows])

    return run_in_transaction(db, op, "list_user_connections")


def mark_running_late(
    db: Session, moment_id: int, user_id: int, now: Optional[datetime] = None
) -> Outcome[ConnectionOut]:
    """Flag + timestamp; the host gets one push, repeated calls stay quiet."""

    def op() -> Outcome[ConnectionOut]:
        connection, first_time = connection_crud.mark_running_late(db, moment_id, user_id, now=now)
        if not first_time:
            return Outcome(value=ConnectionOut.model_validate(connection))
        return Outcome(
            value=ConnectionOut.model_validate(connection),
            changes=[connection_change(UPDATE, connection)],
            pushes=_notify_host(db, moment_id, expo_push.guest_running_late, user_id),
        )

    return run_in_transaction(db, op, "mark_running_late")


def mark_arrived(db: Session, moment_id: int, user_id: int, now: Optional[datetime] = None) -> Outcome[ConnectionOut]:
    def op() -> Outcome[ConnectionOut]:
        connection, changed = connection_crud.mark_arrived(db, moment_id, user_id, now=now)
        if not changed:
            return Outcome(value=ConnectionOut.model_validate(connection))
        return Outcome(
            value=ConnectionOut.model_validate(connection),
            changes=[connection_change(UPDATE, connection)],
            pushes=_notify_host(db, moment_id, expo_push.guest_arrived, user_id),
        )

    return run_in_transaction(db, op, "mark_arrived")


def list_guests(db: Session, moment_id: int) -> Outcome[List[GuestOut]]:
    """Seated guests for the host's live view snapshot."""

    def op() -> Outcome[List[GuestOut]]:
        moment_crud.require_moment(db, moment_id)
        guests = [
            GuestOut(
                connection_id=c.id,
                user_id=c.user_id,
                first_name=name,
                joined_at=c.joined_at,
                status=c.status,
                running_late=bool(c.running_late),
                updated_at=c.updated_at,
            )
            for c, name in connection_crud.list_guests(db, moment_id)
        ]
        return Outcome(value=guests)

    return run_in_transaction(db, op, "list_guests")
