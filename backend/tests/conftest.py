import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from livechat import models
from livechat.api.auth import get_redis
from livechat.database import Base, get_db, make_engine
from livechat.main import create_app
from livechat.realtime.relay import ChatRelay
from livechat.services.auth_service import hash_password
from livechat.services.settings_service import SETTINGS_ID

ADMIN_PASSWORD = "admin123"


class FakeBroadcaster:
    """In-memory rooms; records what every connection would have received."""

    def __init__(self):
        self.rooms = {}
        self.received = {}
        self.room_events = []

    async def join(self, sid, chat_id):
        self.rooms.setdefault(chat_id, set()).add(sid)

    def disconnect(self, sid):
        for members in self.rooms.values():
            members.discard(sid)

    async def to_room(self, chat_id, event, data):
        self.room_events.append((chat_id, event, data))
        for sid in self.rooms.get(chat_id, ()):
            self.received.setdefault(sid, []).append((event, data))

    async def to_sid(self, sid, event, data):
        self.received.setdefault(sid, []).append((event, data))

    def events(self, sid, name=None):
        got = self.received.get(sid, [])
        return [data for event, data in got if name is None or event == name]

    def names(self, sid):
        return [event for event, _ in self.received.get(sid, [])]


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings(db):
    row = models.AdminSettings(
        id=SETTINGS_ID,
        enable_auto_response=True,
        auto_response_message="Thanks! An agent will be with you soon.",
        enable_notifications=False,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def admin(db):
    user = models.User(
        email="admin@chatbot.com",
        name="Admin User",
        password=hash_password(ADMIN_PASSWORD),
        role=models.Role.ADMIN.value,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def visitor(db):
    user = models.User(name="Guest-1", role=models.Role.USER.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def chat(db, visitor):
    session = models.ChatSession(user_id=visitor.id)
    db.add(session)
    db.commit()
    return session


@pytest.fixture
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture
def relay(broadcaster, session_factory):
    return ChatRelay(broadcaster, session_factory=session_factory, auto_response_delay=0)


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def app(engine, session_factory, fake_redis, broadcaster):
    application = create_app(session_factory=session_factory, db_engine=engine)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_redis] = lambda: fake_redis
    application.state.broadcaster = broadcaster
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(client, admin):
    resp = client.post("/auth/login", json={"email": admin.email, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client
