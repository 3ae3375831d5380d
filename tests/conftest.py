from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from ginmai.crud import user_crud
from ginmai.database import get_db, make_engine
from ginmai.integrations.expo_push import get_push_sender
from ginmai.main import app
from ginmai.models import block, connection, feedback, match, moment, report, user  # noqa: F401
from ginmai.models.base import Base, utc_now
from ginmai.realtime.pubsub import get_publisher
from ginmai.routers.moments import get_geocoder
from ginmai.services import moment_service


class FakePublisher:
    def __init__(self):
        self.events = []

    async def publish(self, events):
        events = list(events)
        self.events.extend(events)
        return len(events)


class FakePushSender:
    def __init__(self):
        self.messages = []

    async def send_all(self, messages):
        messages = list(messages)
        self.messages.extend(messages)
        return len(messages)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ginmai_test.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(user_id, first_name=None, push_token=None):
        u = user_crud.upsert_user(db, user_id, first_name or f"User{user_id}", push_token)
        db.commit()
        return u

    return _make


@pytest.fixture
def make_moment(db):
    def _make(host_id, seats_total=3, starts_at=None, duration="normal", lat=37.4979, lng=127.0276, **kw):
        outcome = moment_service.create_moment(
            db,
            host_id=host_id,
            starts_at=starts_at or utc_now() + timedelta(minutes=30),
            duration=duration,
            lat=lat,
            lng=lng,
            seats_total=seats_total,
            **kw,
        )
        assert outcome.ok, outcome.error
        return outcome.value

    return _make


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def push_sender():
    return FakePushSender()


@pytest.fixture
def client(session_factory, publisher, push_sender):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def _geocode(lat, lng):
        return "Yeoksam-dong"

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[get_push_sender] = lambda: push_sender
    app.dependency_overrides[get_geocoder] = lambda: _geocode
    yield TestClient(app)
    app.dependency_overrides.clear()
