import os
import tempfile
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_tasktracker.db")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="tasktracker-uploads-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from tasktracker.main import app
from tasktracker.database import Base, engine, SessionLocal


class RecordingTransport:
    """Stands in for the websocket transport and remembers every push."""

    def __init__(self):
        self.sent = []
        self.broadcasts = []

    def send(self, connection_id, event, data):
        self.sent.append((connection_id, event, data))
        return True

    def broadcast(self, event, data):
        self.broadcasts.append((event, data))
        return 1

    def to(self, connection_id):
        return [data for cid, _, data in self.sent if cid == connection_id]


# Recreate all tables for each test
@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.registry.clear()
    yield
    app.state.registry.clear()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def registry():
    return app.state.registry

@pytest.fixture
def transport():
    notifier = app.state.notifier
    original = notifier.transport
    recording = RecordingTransport()
    notifier.attach(recording)
    yield recording
    notifier.attach(original)

@pytest.fixture
def make_user(client):
    """Register a fresh user; returns (user json, auth headers)."""
    def _make(first_name="Ada", last_name="Lovelace", password="secret123"):
        email = f"user_{uuid.uuid4().hex[:8]}@example.com"
        r = client.post("/api/auth/register", json={
            "email": email,
            "password": password,
            "firstName": first_name,
            "lastName": last_name,
        })
        assert r.status_code == 201, r.text
        data = r.json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}
    return _make

@pytest.fixture
def connect(registry):
    """Bind a user to a fake connection id named after them."""
    def _connect(user):
        connection_id = f"conn-{user['id']}"
        registry.bind(user["id"], connection_id)
        return connection_id
    return _connect
