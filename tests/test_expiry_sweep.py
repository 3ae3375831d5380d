import asyncio
from datetime import timedelta

from ginmai import main
from ginmai.jobs.expiry_sweep import expire_once, start_expiry_sweep_loop
from ginmai.models.base import utc_now
from ginmai.models.user import User
from ginmai.services import moment_service


def test_expire_once_publishes_updates(db, session_factory, make_user, make_moment, publisher):
    make_user(1)
    stale = make_moment(1, starts_at=utc_now() - timedelta(hours=4), duration="long")
    make_moment(1)

    expired = asyncio.run(expire_once(session_factory=session_factory, publisher=publisher))

    assert expired == [stale.id]
    assert [(e.type, e.record["id"], e.record["status"]) for e in publisher.events] == [
        ("UPDATE", stale.id, "completed")
    ]
    db.expire_all()
    assert moment_service.get_moment(db, stale.id).value.status == "completed"


def test_expire_once_with_nothing_to_do(session_factory, publisher):
    assert asyncio.run(expire_once(session_factory=session_factory, publisher=publisher)) == []
    assert publisher.events == []


def test_expire_once_credits_host_once(db, session_factory, make_user, make_moment, publisher):
    make_user(1)
    stale = make_moment(1, starts_at=utc_now() - timedelta(hours=4), duration="long")

    asyncio.run(expire_once(session_factory=session_factory, publisher=publisher))
    db.expire_all()
    assert db.get(User, 1).meals_hosted == 1

    # a late "done" from the host is a no-op on an already completed moment
    assert moment_service.complete(db, stale.id, by_host_id=1).ok
    db.expire_all()
    assert db.get(User, 1).meals_hosted == 1


def test_sweep_loop_needs_a_running_loop():
    assert start_expiry_sweep_loop() is None


def test_sweep_task_is_cancelled_on_shutdown(monkeypatch):
    monkeypatch.setattr(main, "EXPIRY_SWEEP_ENABLED", True)
    monkeypatch.setattr(
        main, "start_expiry_sweep_loop", lambda: asyncio.get_running_loop().create_task(asyncio.sleep(3600))
    )

    async def lifecycle():
        await main._startup_jobs()
        task = main.app.state.expiry_task
        assert task is not None and not task.done()
        await main._shutdown_jobs()
        return task

    task = asyncio.run(lifecycle())
    assert task.cancelled()
    assert main.app.state.expiry_task is None
