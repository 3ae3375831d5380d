import asyncio
from datetime import timedelta

from ginmai.client.reminders import ReminderScheduler
from ginmai.client.scheduler import AsyncioScheduler
from ginmai.models.base import utc_now
from ginmai.schemas.connection import ConnectionOut
from ginmai.schemas.moment import MomentOut

NOW = utc_now()
USER = 7


class RecordingScheduler:
    def __init__(self, fail=False):
        self.fail = fail
        self.scheduled = {}
        self.cancelled = []
        self._n = 0

    def schedule_at(self, when, title, body, data):
        if self.fail:
            raise RuntimeError("notifications disabled")
        self._n += 1
        handle = f"h{self._n}"
        self.scheduled[handle] = (when, data["momentId"])
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)
        self.scheduled.pop(handle, None)


def moment(moment_id, starts_in_min, host_id=1, status="active"):
    starts = NOW + timedelta(minutes=starts_in_min)
    return MomentOut(
        id=moment_id,
        host_id=host_id,
        host_name="Host",
        starts_at=starts,
        duration="normal",
        expires_at=starts + timedelta(hours=2),
        lat=37.5,
        lng=127.0,
        seats_total=2,
        seats_taken=1,
        status=status,
        place_name="Gimbap Heaven",
    )


def conn(moment_id, status="confirmed"):
    return ConnectionOut(id=moment_id, moment_id=moment_id, user_id=USER, status=status, joined_at=NOW)


def reminders(scheduler):
    return ReminderScheduler(USER, scheduler, clock=lambda: NOW)


def test_schedules_hosted_and_joined_moments_ten_minutes_before():
    s = RecordingScheduler()
    r = reminders(s)
    hosted = moment(1, 60, host_id=USER)
    joined = moment(2, 45)
    unrelated = moment(3, 45)

    assert r.sync([hosted, joined, unrelated], [conn(2)]) == [1, 2]
    fire_times = {mid: when for when, mid in s.scheduled.values()}
    assert fire_times[1] == hosted.starts_at - timedelta(minutes=10)
    assert fire_times[2] == joined.starts_at - timedelta(minutes=10)


def test_too_late_guard_skips():
    s = RecordingScheduler()
    r = reminders(s)
    # fires in 20 seconds: too close
    soon = moment(1, 10, host_id=USER).model_copy(update={"starts_at": NOW + timedelta(minutes=10, seconds=20)})
    assert r.schedule(soon) is False
    assert s.scheduled == {}


def test_cancelled_and_past_moments_are_skipped():
    s = RecordingScheduler()
    r = reminders(s)
    assert r.sync([moment(1, 60, host_id=USER, status="cancelled"), moment(2, -5, host_id=USER)], []) == []


def test_resync_keeps_single_reminder_and_moves_it():
    s = RecordingScheduler()
    r = reminders(s)
    m = moment(1, 60, host_id=USER)
    r.sync([m], [])
    r.sync([m], [])
    assert len(s.scheduled) == 1

    moved = m.model_copy(update={"starts_at": m.starts_at + timedelta(minutes=30)})
    r.sync([moved], [])
    assert len(s.scheduled) == 1
    assert s.cancelled == ["h1"]
    assert r.pending_for(1).fire_at == moved.starts_at - timedelta(minutes=10)


def test_lost_interest_cancels():
    s = RecordingScheduler()
    r = reminders(s)
    m = moment(2, 60)
    r.sync([m], [conn(2)])
    r.sync([m], [conn(2, status="cancelled")])
    assert s.scheduled == {}
    assert r.pending_for(2) is None


def test_clear_on_logout():
    s = RecordingScheduler()
    r = reminders(s)
    r.sync([moment(1, 60, host_id=USER), moment(2, 90, host_id=USER)], [])
    r.clear()
    assert s.scheduled == {}


def test_scheduler_failure_is_swallowed():
    r = reminders(RecordingScheduler(fail=True))
    assert r.sync([moment(1, 60, host_id=USER)], []) == []


def test_asyncio_scheduler_fires_and_cancels():
    fired = []

    async def run():
        s = AsyncioScheduler(on_fire=lambda title, body, data: fired.append(data["momentId"]), clock=utc_now)
        s.schedule_at(utc_now() + timedelta(milliseconds=20), "t", "b", {"momentId": 1})
        handle = s.schedule_at(utc_now() + timedelta(milliseconds=20), "t", "b", {"momentId": 2})
        s.cancel(handle)
        await asyncio.sleep(0.1)
        return s.pending

    assert asyncio.run(run()) == 0
    assert fired == [1]
