from datetime import timedelta

from ginmai.models.base import utc_now


def _h(user_id):
    return {"X-User-Id": str(user_id)}


def _create(client, host_id, **body):
    payload = {
        "starts_at": (utc_now() + timedelta(minutes=30)).isoformat(),
        "duration": "normal",
        "lat": 37.4979,
        "lng": 127.0276,
        "seats_total": 2,
    }
    payload.update(body)
    return client.post("/moments", json=payload, headers=_h(host_id))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_profile_upsert_is_owner_only(client):
    res = client.put("/users/1", json={"first_name": "Mina"}, headers=_h(1))
    assert res.status_code == 200
    assert res.json()["first_name"] == "Mina"

    res = client.put("/users/1", json={"first_name": "Hacker"}, headers=_h(2))
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "not_owner"


def test_create_requires_identity(client):
    res = client.post("/moments", json={"lat": 37.5, "lng": 127.0, "seats_total": 2})
    assert res.status_code == 401
    assert res.json()["detail"]["reason"] == "unauthenticated"


def test_create_geocodes_area_and_publishes(client, make_user, publisher):
    make_user(1, "Mina")
    res = _create(client, 1)
    assert res.status_code == 200
    body = res.json()
    assert body["area_name"] == "Yeoksam-dong"
    assert body["host_name"] == "Mina"
    assert body["status"] == "active"
    assert [(e.table, e.type) for e in publisher.events] == [("moments", "INSERT")]
    assert publisher.events[0].channel == "moments:changes"


def test_create_keeps_given_place_name(client, make_user):
    make_user(1)
    body = _create(client, 1, place_name="Gimbap Heaven").json()
    assert body["place_name"] == "Gimbap Heaven"
    assert body["area_name"] is None


def test_create_rejects_five_seats(client, make_user):
    make_user(1)
    assert _create(client, 1, seats_total=5).status_code == 422


def test_join_flow_over_http(client, make_user, publisher, push_sender):
    make_user(1, "Host", push_token="ExponentPushToken[host]")
    make_user(2, "Jisoo")
    make_user(3, "Minjun")
    make_user(4, "Late")
    moment_id = _create(client, 1).json()["id"]

    res = client.post(f"/moments/{moment_id}/join", headers=_h(2))
    assert res.status_code == 200
    assert res.json()["moment"]["seats_taken"] == 1
    assert push_sender.messages[-1].data["type"] == "guest_joined"
    channels = {e.channel for e in publisher.events}
    assert f"moment:{moment_id}:connections" in channels

    assert client.post(f"/moments/{moment_id}/join", headers=_h(3)).json()["moment"]["status"] == "full"

    res = client.post(f"/moments/{moment_id}/join", headers=_h(4))
    assert res.status_code == 409
    assert res.json()["detail"] == {"kind": "conflict", "reason": "full", "message": "This moment is full"}

    res = client.post(f"/moments/{moment_id}/join", headers=_h(1))
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "already_host"

    assert client.get(f"/users/me/connections/{moment_id}", headers=_h(2)).json()["joined"] is True

    res = client.delete(f"/moments/{moment_id}/leave", headers=_h(2))
    assert res.status_code == 200
    assert res.json()["moment"]["status"] == "active"
    assert client.get(f"/users/me/connections/{moment_id}", headers=_h(2)).json()["joined"] is False


def test_listing_hides_full_and_cancelled(client, make_user):
    make_user(1)
    make_user(2)
    open_id = _create(client, 1).json()["id"]
    full_id = _create(client, 1, seats_total=1).json()["id"]
    gone_id = _create(client, 1).json()["id"]
    client.post(f"/moments/{full_id}/join", headers=_h(2))
    assert client.post(f"/moments/{gone_id}/cancel", headers=_h(1)).status_code == 200

    ids = [m["id"] for m in client.get("/moments").json()]
    assert ids == [open_id]
    ids = [m["id"] for m in client.get("/moments", params={"include_full": True}).json()]
    assert sorted(ids) == sorted([open_id, full_id])


def test_cancel_by_guest_is_forbidden(client, make_user):
    make_user(1)
    make_user(2)
    moment_id = _create(client, 1).json()["id"]
    res = client.post(f"/moments/{moment_id}/cancel", headers=_h(2))
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "not_host"


def test_unknown_moment_is_404(client):
    res = client.get("/moments/12345")
    assert res.status_code == 404
    assert res.json()["detail"]["reason"] == "moment_not_found"


def test_guests_and_running_late(client, make_user, push_sender):
    make_user(1, push_token="ExponentPushToken[host]")
    make_user(2, "Jisoo")
    moment_id = _create(client, 1).json()["id"]
    client.post(f"/moments/{moment_id}/join", headers=_h(2))

    guests = client.get(f"/moments/{moment_id}/guests").json()
    assert [(g["user_id"], g["first_name"]) for g in guests] == [(2, "Jisoo")]

    before = len(push_sender.messages)
    assert client.post(f"/moments/{moment_id}/running-late", headers=_h(2)).json()["running_late"] is True
    client.post(f"/moments/{moment_id}/running-late", headers=_h(2))
    assert len(push_sender.messages) == before + 1


def test_feedback_match_and_reliability(client, make_user):
    make_user(1, "Host")
    make_user(2, "Guest")
    moment_id = _create(client, 1).json()["id"]
    client.post(f"/moments/{moment_id}/join", headers=_h(2))

    res = client.post(
        f"/moments/{moment_id}/feedback",
        json={"about_user": 1, "rating": "great", "eat_again": True},
        headers=_h(2),
    )
    assert res.status_code == 200 and res.json()["matched"] is False
    res = client.post(
        f"/moments/{moment_id}/feedback",
        json={"about_user": 2, "rating": "great", "eat_again": True},
        headers=_h(1),
    )
    assert res.json()["matched"] is True
    res = client.post(f"/moments/{moment_id}/match-check", json={"about_user": 1}, headers=_h(2))
    assert res.json() == {"matched": True}

    matches = client.get("/users/me/matches", headers=_h(2)).json()
    assert [m["user_id"] for m in matches] == [1]

    assert client.post(f"/moments/{moment_id}/connection/complete", headers=_h(2)).status_code == 200
    assert client.post(f"/moments/{moment_id}/complete", headers=_h(1)).status_code == 200

    rel = client.get("/users/2/reliability").json()
    assert rel["total_meals"] == 1
    assert rel["label"] == "New"
