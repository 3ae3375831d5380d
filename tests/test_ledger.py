from ginmai.crud import connection_crud
from ginmai.errors import Reason
from ginmai.services import ledger_service, moment_service


def test_has_active_connection_follows_status(db, make_user, make_moment):
    make_user(1)
    make_user(2)
    m = make_moment(1)
    assert ledger_service.has_active_connection(db, 2, m.id).value is False

    moment_service.join(db, m.id, 2)
    assert ledger_service.has_active_connection(db, 2, m.id).value is True

    moment_service.leave(db, m.id, 2)
    assert ledger_service.has_active_connection(db, 2, m.id).value is False


def test_list_user_connections_skips_cancelled(db, make_user, make_moment):
    make_user(1)
    make_user(2)
    first = make_moment(1)
    second = make_moment(1)
    left = make_moment(1)
    for m in (first, second, left):
        moment_service.join(db, m.id, 2)
    moment_service.leave(db, left.id, 2)

    conns = ledger_service.list_user_connections(db, 2).value
    assert [c.moment_id for c in conns] == [second.id, first.id]
    assert all(c.status == "confirmed" for c in conns)


def test_running_late_notifies_host_once(db, make_user, make_moment):
    make_user(1, push_token="ExponentPushToken[host]")
    make_user(2, "Doyun")
    m = make_moment(1)
    moment_service.join(db, m.id, 2)

    first = ledger_service.mark_running_late(db, m.id, 2)
    assert first.ok
    assert first.value.running_late is True
    assert first.value.status == "confirmed"
    assert first.value.running_late_at is not None
    assert len(first.pushes) == 1
    assert first.pushes[0].data["type"] == "guest_running_late"

    second = ledger_service.mark_running_late(db, m.id, 2)
    assert second.ok
    assert second.pushes == []
    assert second.changes == []


def test_running_late_requires_seat(db, make_user, make_moment):
    make_user(1)
    make_user(2)
    m = make_moment(1)
    assert ledger_service.mark_running_late(db, m.id, 2).reason == Reason.CONNECTION_NOT_FOUND


def test_arrived_keeps_seat(db, make_user, make_moment):
    make_user(1, push_token="ExponentPushToken[host]")
    make_user(2)
    m = make_moment(1, seats_total=1)
    moment_service.join(db, m.id, 2)

    out = ledger_service.mark_arrived(db, m.id, 2)
    assert out.value.status == "arrived"
    assert out.value.arrived_at is not None
    assert out.pushes[0].data["type"] == "guest_arrived"
    assert ledger_service.has_active_connection(db, 2, m.id).value is True

    # arrived guests can still leave and free the seat
    left = moment_service.leave(db, m.id, 2)
    assert left.value.seats_taken == 0
    assert left.value.status == "active"


def test_list_guests_in_join_order(db, make_user, make_moment):
    make_user(1)
    make_user(2, "Seoyeon")
    make_user(3, "Minjun")
    m = make_moment(1)
    moment_service.join(db, m.id, 3)
    moment_service.join(db, m.id, 2)

    guests = ledger_service.list_guests(db, m.id).value
    assert [(g.user_id, g.first_name) for g in guests] == [(3, "Minjun"), (2, "Seoyeon")]
    assert connection_crud.get_connection(db, m.id, 3).id == guests[0].connection_id
