from datetime import timedelta

from ginmai.client.realtime import SSEDecoder
from ginmai.client.views import GuestRoster, MomentView
from ginmai.models.base import utc_now
from ginmai.schemas.connection import GuestOut
from ginmai.schemas.moment import MomentOut

NOW = utc_now()


def moment_record(moment_id, status="active", starts_in=30, updated_offset=0, expired=False, **extra):
    starts = NOW + timedelta(minutes=starts_in)
    expires = NOW - timedelta(minutes=1) if expired else starts + timedelta(hours=2)
    record = {
        "id": moment_id,
        "host_id": 1,
        "host_name": "Host",
        "starts_at": starts.isoformat(),
        "duration": "normal",
        "expires_at": expires.isoformat(),
        "lat": 37.5,
        "lng": 127.0,
        "seats_total": 2,
        "seats_taken": 0,
        "status": status,
        "updated_at": (NOW + timedelta(seconds=updated_offset)).isoformat(),
    }
    record.update(extra)
    return record


def conn_record(user_id, status, moment_id=9, updated_offset=0):
    return {
        "id": user_id * 10,
        "moment_id": moment_id,
        "user_id": user_id,
        "status": status,
        "joined_at": NOW.isoformat(),
        "updated_at": (NOW + timedelta(seconds=updated_offset)).isoformat(),
    }


def view():
    return MomentView(clock=lambda: NOW)


def test_insert_is_deduplicated():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(1)})
    v.apply({"type": "INSERT", "record": moment_record(1, seats_taken=1)})
    assert len(v) == 1
    assert v.get(1).seats_taken == 0


def test_insert_of_expired_or_full_is_ignored():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(1, expired=True)})
    v.apply({"type": "INSERT", "record": moment_record(2, status="full")})
    assert v.snapshot() == []


def test_update_replaces_or_removes():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(1)})
    v.apply({"type": "UPDATE", "record": moment_record(1, seats_taken=1, updated_offset=1)})
    assert v.get(1).seats_taken == 1

    v.apply({"type": "UPDATE", "record": moment_record(1, status="cancelled", updated_offset=2)})
    assert v.get(1) is None


def test_stale_update_does_not_overwrite():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(1, updated_offset=5)})
    v.apply({"type": "UPDATE", "record": moment_record(1, status="full", updated_offset=1)})
    assert v.get(1).status == "active"


def test_delete_removes():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(1)})
    v.apply({"type": "DELETE", "old": {"id": 1}})
    assert len(v) == 0


def test_stale_update_after_cancel_does_not_resurrect():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(7)})
    v.apply({"type": "UPDATE", "record": moment_record(7, status="cancelled", updated_offset=2)})
    v.apply({"type": "UPDATE", "record": moment_record(7, seats_taken=1, updated_offset=1)})
    assert v.get(7) is None


def test_redelivered_insert_after_cancel_does_not_resurrect():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(7)})
    v.apply({"type": "UPDATE", "record": moment_record(7, status="cancelled", updated_offset=2)})
    v.apply({"type": "INSERT", "record": moment_record(7)})
    assert v.get(7) is None
    assert v.snapshot() == []


def test_late_update_after_delete_is_ignored():
    v = view()
    v.apply({"type": "INSERT", "record": moment_record(7)})
    v.apply({"type": "DELETE", "old": {"id": 7}})
    v.apply({"type": "UPDATE", "record": moment_record(7, seats_taken=1, updated_offset=3)})
    assert v.get(7) is None


def test_snapshot_seeds_seen_versions():
    v = view()
    v.replace_all([MomentOut.model_validate(moment_record(7, seats_taken=1, updated_offset=2))])
    v.apply({"type": "UPDATE", "record": moment_record(7, updated_offset=1)})
    assert v.get(7).seats_taken == 1


def test_snapshot_older_than_cancel_keeps_moment_gone():
    v = view()
    v.apply({"type": "UPDATE", "record": moment_record(7, status="cancelled", updated_offset=2)})
    v.replace_all([MomentOut.model_validate(moment_record(7, updated_offset=1))])
    assert v.get(7) is None


def test_snapshot_sorted_by_start():
    v = view()
    v.replace_all(
        [MomentOut.model_validate(moment_record(i, starts_in=mins)) for i, mins in ((1, 50), (2, 10), (3, 30))]
    )
    assert [m.id for m in v.snapshot()] == [2, 3, 1]


def test_roster_joined_then_cancelled_uses_cached_name():
    names = {5: "Jisoo"}
    roster = GuestRoster(9, resolve_name=names.get)

    joined = roster.apply({"type": "INSERT", "record": conn_record(5, "confirmed")})
    assert (joined.kind, joined.name) == ("joined", "Jisoo")
    assert roster.apply({"type": "INSERT", "record": conn_record(5, "confirmed")}) is None

    names.clear()
    cancelled = roster.apply({"type": "UPDATE", "record": conn_record(5, "cancelled", updated_offset=1)})
    assert (cancelled.kind, cancelled.name) == ("cancelled", "Jisoo")
    assert roster.seated() == []


def test_roster_name_fallback_and_other_moments():
    def broken(user_id):
        raise RuntimeError("lookup down")

    roster = GuestRoster(9, resolve_name=broken)
    assert roster.apply({"type": "INSERT", "record": conn_record(6, "confirmed", moment_id=8)}) is None
    event = roster.apply({"type": "INSERT", "record": conn_record(6, "confirmed")})
    assert event.name == "Guest"


def test_roster_rejoin_is_a_new_join():
    roster = GuestRoster(9)
    roster.apply({"type": "INSERT", "record": conn_record(5, "confirmed")})
    roster.apply({"type": "UPDATE", "record": conn_record(5, "cancelled", updated_offset=1)})
    again = roster.apply({"type": "UPDATE", "record": conn_record(5, "confirmed", updated_offset=2)})
    assert again.kind == "joined"


def test_roster_ignores_event_older_than_snapshot():
    roster = GuestRoster(9)
    roster.replace_all(
        [
            GuestOut(
                connection_id=50,
                user_id=5,
                first_name="Jisoo",
                joined_at=NOW,
                status="confirmed",
                updated_at=NOW + timedelta(seconds=2),
            )
        ]
    )
    assert roster.apply({"type": "UPDATE", "record": conn_record(5, "cancelled", updated_offset=1)}) is None
    assert roster.apply({"type": "INSERT", "record": conn_record(5, "confirmed")}) is None
    assert roster.seated() == [5]


def test_sse_decoder():
    d = SSEDecoder()
    lines = ["event: ready", "data: {}", "", ": ping", "", "event: change", 'data: {"type": "INSERT"}', ""]
    msgs = [m for m in (d.feed(line) for line in lines) if m is not None]
    assert [m.event for m in msgs] == ["ready", "change"]
    assert msgs[1].json() == {"type": "INSERT"}
