import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from ginmai.client.api import GinMaiClient
from ginmai.client.realtime import RealtimeSession
from ginmai.errors import Reason, StoreUnavailable
from ginmai.models.base import utc_now


def moment_json(moment_id=5, seats_taken=1):
    starts = utc_now() + timedelta(minutes=30)
    return {
        "id": moment_id,
        "host_id": 1,
        "host_name": "Host",
        "starts_at": starts.isoformat(),
        "duration": "normal",
        "expires_at": (starts + timedelta(hours=2)).isoformat(),
        "lat": 37.5,
        "lng": 127.0,
        "seats_total": 2,
        "seats_taken": seats_taken,
        "status": "active",
    }


def run_with(handler, coro_fn):
    async def run():
        async with GinMaiClient("http://api.test", user_id=2, transport=httpx.MockTransport(handler)) as api:
            return await coro_fn(api)

    return asyncio.run(run())


def test_join_timeout_reconciles_committed_join():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        assert request.headers["X-User-Id"] == "2"
        if request.url.path == "/moments/5/join":
            raise httpx.ReadTimeout("slow", request=request)
        if request.url.path == "/users/me/connections/5":
            return httpx.Response(200, json={"moment_id": 5, "joined": True})
        return httpx.Response(200, json=moment_json())

    outcome = run_with(handler, lambda api: api.join_moment(5))
    assert outcome.ok
    assert outcome.value.seats_taken == 1
    assert calls == [("POST", "/moments/5/join"), ("GET", "/users/me/connections/5"), ("GET", "/moments/5")]


def test_join_retry_already_joined_counts_as_success():
    attempts = []

    def handler(request):
        if request.url.path == "/moments/5/join":
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(
                409, json={"detail": {"kind": "conflict", "reason": "already_joined", "message": "joined"}}
            )
        if request.url.path == "/users/me/connections/5":
            # the first attempt had not committed yet when we checked
            return httpx.Response(200, json={"moment_id": 5, "joined": False})
        return httpx.Response(200, json=moment_json())

    outcome = run_with(handler, lambda api: api.join_moment(5))
    assert outcome.ok
    assert len(attempts) == 2


def test_join_full_is_a_typed_failure():
    def handler(request):
        return httpx.Response(409, json={"detail": {"kind": "conflict", "reason": "full", "message": "full"}})

    outcome = run_with(handler, lambda api: api.join_moment(5))
    assert not outcome.ok
    assert outcome.reason == Reason.FULL


def test_unreachable_server_raises_store_unavailable():
    def handler(request):
        return httpx.Response(503, json={"detail": {"kind": "unavailable", "reason": "store_down"}})

    with pytest.raises(StoreUnavailable):
        run_with(handler, lambda api: api.list_active())


def test_realtime_session_snapshots_then_applies_changes():
    inserted = moment_json(moment_id=6, seats_taken=0)
    body = (
        "event: ready\ndata: {}\n\n"
        ": ping\n\n"
        f"event: change\ndata: {json.dumps({'table': 'moments', 'type': 'INSERT', 'record': inserted})}\n\n"
    )

    def handler(request):
        if request.url.path == "/moments/stream":
            return httpx.Response(200, text=body, headers={"Content-Type": "text/event-stream"})
        if request.url.path == "/moments":
            return httpx.Response(200, json=[moment_json(moment_id=5)])
        return httpx.Response(404)

    async def run(api):
        async with RealtimeSession(api, reconnect_delay=30) as rt:
            for _ in range(50):
                if len(rt.moments) == 2:
                    break
                await asyncio.sleep(0.01)
            return [m.id for m in rt.moments.snapshot()]

    assert sorted(run_with(handler, run)) == [5, 6]


def test_realtime_session_survives_a_bad_snapshot():
    snapshots = [[{"id": "not-a-moment"}], [moment_json(moment_id=5)]]

    def handler(request):
        if request.url.path == "/moments/stream":
            return httpx.Response(200, text="event: ready\ndata: {}\n\n", headers={"Content-Type": "text/event-stream"})
        if request.url.path == "/moments":
            return httpx.Response(200, json=snapshots.pop(0) if len(snapshots) > 1 else snapshots[0])
        return httpx.Response(404)

    async def run(api):
        async with RealtimeSession(api, reconnect_delay=0.01) as rt:
            for _ in range(100):
                if len(rt.moments) == 1:
                    break
                await asyncio.sleep(0.01)
            return [m.id for m in rt.moments.snapshot()]

    assert run_with(handler, run) == [5]
