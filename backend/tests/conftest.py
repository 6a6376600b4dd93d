from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from cyberwhisper.config import Settings
from cyberwhisper.database import RecordStore
from cyberwhisper.errors import ObjectStoreError
from cyberwhisper.main import create_app
from cyberwhisper.storage import InMemoryObjectStore


class RecordingObjectStore(InMemoryObjectStore):
    """In-memory store that logs every call into a shared event list.

    `fail_upload` / `fail_delete` make the next calls raise like an
    unreachable backend would.
    """

    def __init__(self, events, root_folder="cyberwhisper"):
        super().__init__(root_folder)
        self.events = events
        self.fail_upload = False
        self.fail_delete = False

    def upload(self, payload, mime_type, namespace):
        self.events.append(("upload", namespace))
        if self.fail_upload:
            raise ObjectStoreError("object store unavailable")
        return super().upload(payload, mime_type, namespace)

    def delete(self, handle):
        self.events.append(("delete_blob", handle))
        if self.fail_delete:
            raise ObjectStoreError("object store unavailable")
        return super().delete(handle)


class FakeRepository:
    """Dict-backed stand-in for a repository, logging into the same events."""

    kind = "gallery image"

    def __init__(self, events):
        self.events = events
        self.rows = {}
        self.next_id = 1
        self.fail = set()

    def get(self, record_id):
        row = self.rows.get(record_id)
        return SimpleNamespace(**row) if row else None

    def create(self, values):
        self.events.append(("insert",))
        if "create" in self.fail:
            raise RuntimeError("insert failed")
        row = dict(values, id=self.next_id)
        self.rows[self.next_id] = row
        self.next_id += 1
        return SimpleNamespace(**row)

    def update(self, record_id, changes):
        self.events.append(("update", record_id))
        if "update" in self.fail:
            raise RuntimeError("update failed")
        if record_id not in self.rows:
            return None
        self.rows[record_id].update(changes)
        return SimpleNamespace(**self.rows[record_id])

    def delete(self, record_id):
        self.events.append(("delete_row", record_id))
        if "delete" in self.fail:
            raise RuntimeError("delete failed")
        return self.rows.pop(record_id, None) is not None


@pytest.fixture
def events():
    return []


@pytest.fixture
def object_store(events):
    return RecordingObjectStore(events)


@pytest.fixture
def fake_repo(events):
    return FakeRepository(events)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings pointing at a throwaway SQLite file and the in-memory store."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("OBJECT_STORE", "memory")
    monkeypatch.setenv("MEDIA_ROOT_FOLDER", "cyberwhisper")
    for name in ("MAX_PAGE_SIZE", "DEFAULT_PAGE_SIZE", "MAX_MEDIA_BYTES", "MAX_PROFILE_BYTES"):
        monkeypatch.delenv(name, raising=False)
    return Settings()


@pytest.fixture
def record_store(settings):
    store = RecordStore(settings.DATABASE_URL).init()
    yield store
    store.shutdown()


@pytest.fixture
def client(settings, record_store, object_store):
    app = create_app(settings, record_store=record_store, object_store=object_store)
    with TestClient(app) as c:
        yield c
