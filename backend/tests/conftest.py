import datetime as dt

import pytest
from fastapi.testclient import TestClient

from platetrack.db import Database, get_db
from platetrack.main import create_app
from platetrack.services.occurrences import record_occurrence
from platetrack.settings import get_settings

API_KEY = "test-key"
T0 = dt.datetime(2024, 5, 1, 12, 0, 0)


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send(self, plate_number, priority, image_data=None):
        if self.fail:
            raise RuntimeError("push service down")
        self.sent.append((plate_number, priority, image_data))


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'platetrack.db'}")
    monkeypatch.setenv("SETTINGS_FILE", str(tmp_path / "settings.yaml"))
    monkeypatch.setenv("API_KEY", API_KEY)
    monkeypatch.setenv("MAX_RECORDS", "100")
    monkeypatch.setenv("LOG_FILE", "")
    return get_settings()


@pytest.fixture
def database(settings):
    db = Database(settings, retries=1, backoff_seconds=0)
    db.create_all()
    yield db
    db.reset()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def client(database, notifier, broadcaster):
    app = create_app(notifier=notifier, broadcaster=broadcaster)

    def _get_db():
        s = database.session()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth():
    return {"x-api-key": API_KEY}


@pytest.fixture
def add_read(session):
    """Store a read at T0 + `minutes`."""
    def _add(plate, minutes=0, camera="gate"):
        result = record_occurrence(session, plate, T0 + dt.timedelta(minutes=minutes), camera_name=camera)
        return result.read_id
    return _add
