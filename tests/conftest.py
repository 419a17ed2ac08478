import os
import threading

# mockbook.api.main reads the environment config at import time
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import timedelta
from typing import Any, Dict, List, Tuple

import mongomock
import pytest

from mockbook.config import AuthConfig, BookingConfig, Config, MongoConfig
from mockbook.schemas.common import AuthContext, NotificationEvent, Role
from mockbook.services.container import build_container
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist


class RecordingNotifier:
    """Collects notify() calls instead of sending email."""

    def __init__(self):
        self.calls: List[Tuple[NotificationEvent, Dict[str, Any]]] = []

    def notify(self, event, payload):
        self.calls.append((NotificationEvent(event), payload))

    def events(self) -> List[NotificationEvent]:
        return [event for event, _ in self.calls]


class FakeBlobStore:
    def __init__(self):
        self.uploads = []

    def upload(self, file_bytes, mime_type, folder):
        self.uploads.append((file_bytes, mime_type, folder))
        return f"https://files.test/{folder}/{len(self.uploads)}.png"


class AtomicCollection:
    """
    Applies each collection call under a shared lock, the way the server
    applies single operations atomically. mongomock does not: its
    find_one_and_update is a find followed by a separate update.
    """

    def __init__(self, collection, lock):
        self._collection = collection
        self._lock = lock

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if not callable(attr):
            return attr

        def call(*args, **kwargs):
            with self._lock:
                return attr(*args, **kwargs)
        return call


class AtomicDatabase:
    def __init__(self, db):
        self._db = db
        self._lock = threading.Lock()

    def __getitem__(self, name):
        return AtomicCollection(self._db[name], self._lock)


def tomorrow_at(hour: int, minute: int = 0):
    day = get_now_ist() + timedelta(days=1)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def window(hour: int, minute: int = 0, length: int = 40) -> Tuple[str, str]:
    start = tomorrow_at(hour, minute)
    return format_iso_ist(start), format_iso_ist(start + timedelta(minutes=length))


@pytest.fixture
def config():
    return Config(
        mongo=MongoConfig(uri="mongodb://localhost:27017", db_name="mockbook_test"),
        auth=AuthConfig(jwt_secret="test-secret"),
        booking=BookingConfig(admin_email="ops@example.com"),
    )


@pytest.fixture
def db():
    return mongomock.MongoClient().mockbook_test


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def services(config, db, notifier, blob_store):
    container = build_container(config, db=db, notifier=notifier, blob_store=blob_store)
    container.prices.seed_defaults()
    db["users"].insert_many([
        {"_id": "cand-1", "name": "Asha", "email": "asha@example.com", "role": "candidate"},
        {"_id": "cand-2", "name": "Ravi", "email": "ravi@example.com", "role": "candidate"},
        {
            "_id": "int-1", "name": "Meera", "email": "meera@example.com", "role": "interviewer",
            "upi_id": "meera@upi", "qr_code_url": "https://files.test/qr/meera.png",
            "default_meeting_link": "https://meet.example.com/meera",
        },
        {"_id": "int-2", "name": "Karan", "email": "karan@example.com", "role": "interviewer"},
        {"_id": "admin-1", "name": "Admin", "email": "admin@example.com", "role": "admin"},
    ])
    return container


@pytest.fixture
def candidate():
    return AuthContext(user_id="cand-1", role=Role.CANDIDATE)


@pytest.fixture
def other_candidate():
    return AuthContext(user_id="cand-2", role=Role.CANDIDATE)


@pytest.fixture
def interviewer():
    return AuthContext(user_id="int-1", role=Role.INTERVIEWER)


@pytest.fixture
def other_interviewer():
    return AuthContext(user_id="int-2", role=Role.INTERVIEWER)


@pytest.fixture
def admin():
    return AuthContext(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def slot(services):
    """DSA slot for int-1 tomorrow 09:00-09:40."""
    start, end = window(9)
    return services.slots.create_slot("int-1", start, end, "DSA")
