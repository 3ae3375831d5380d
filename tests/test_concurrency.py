import threading

from ginmai.errors import Reason
from ginmai.models.connection import Connection
from ginmai.services import moment_service


def _race(session_factory, moment_id, user_ids):
    barrier = threading.Barrier(len(user_ids))
    results = {}

    def worker(uid):
        session = session_factory()
        try:
            barrier.wait()
            results[uid] = moment_service.join(session, moment_id, uid)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_two_joiners_one_seat(db, session_factory, make_user, make_moment):
    make_user(1)
    make_user(2)
    make_user(3)
    m = make_moment(1, seats_total=1)

    results = _race(session_factory, m.id, [2, 3])

    assert sorted(r.ok for r in results.values()) == [False, True]
    loser = next(r for r in results.values() if not r.ok)
    assert loser.reason == Reason.FULL

    db.expire_all()
    state = moment_service.get_moment(db, m.id).value
    assert state.seats_taken == 1
    assert state.status == "full"
    assert db.query(Connection).filter(Connection.moment_id == m.id).count() == 1


def test_many_joiners_never_overbook(db, session_factory, make_user, make_moment):
    make_user(1)
    joiners = list(range(10, 16))
    for uid in joiners:
        make_user(uid)
    m = make_moment(1, seats_total=2)

    results = _race(session_factory, m.id, joiners)

    winners = [uid for uid, r in results.items() if r.ok]
    assert len(winners) == 2
    assert all(r.reason == Reason.FULL for r in results.values() if not r.ok)

    db.expire_all()
    assert moment_service.get_moment(db, m.id).value.seats_taken == 2
    seated = db.query(Connection).filter(Connection.moment_id == m.id, Connection.status == "confirmed").count()
    assert seated == 2
