"""Pytest configuration and shared fixtures.

Provides an in-memory storage backend, a fake remote document service, and
ready-made store / sync client / API client instances.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from errors import RemoteNotFound
from main import create_app
from record_models import (
    Gender,
    HomeworkPayload,
    LessonPayload,
    ScheduleSlotPayload,
    StaffPayload,
)
from record_store import RecordStore
from storage import MemoryBackend
from sync_client import SyncClient
from sync_state import SyncStateMachine


class FakeDocumentService:
    """Dictionary-backed stand-in for the gist API."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    def _record(self, operation: str, token: str, document_id: Optional[str] = None) -> None:
        self.calls.append((operation, token, document_id))
        if self.fail_with is not None:
            raise self.fail_with

    def create_document(self, content, *, token):
        self._record('create', token)
        document_id = f'gist-{len(self.documents) + 1}'
        self.documents[document_id] = copy.deepcopy(content)
        return document_id

    def update_document(self, document_id, content, *, token):
        self._record('update', token, document_id)
        if document_id not in self.documents:
            raise RemoteNotFound()
        self.documents[document_id] = copy.deepcopy(content)

    def fetch_document(self, document_id, *, token):
        self._record('fetch', token, document_id)
        if document_id not in self.documents:
            raise RemoteNotFound()
        return copy.deepcopy(self.documents[document_id])

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


# =============================================================================
# Payload factories
# =============================================================================


def make_staff_payload(**overrides) -> StaffPayload:
    data = {
        'fullName': 'Amina Yusuf',
        'gender': Gender.FEMALE,
        'phoneNumber': '+254700000001',
        'email': 'amina@example.org',
        'specialization': 'Mathematics',
        'yearStarted': 2019,
    }
    data.update(overrides)
    return StaffPayload(**data)


def make_slot_payload(**overrides) -> ScheduleSlotPayload:
    data = {
        'day': 'Monday',
        'classId': 'Grade 1',
        'periodNumber': 2,
        'subject': 'Math',
        'teacherId': 't1',
        'startTime': '09:00',
        'endTime': '10:00',
    }
    data.update(overrides)
    return ScheduleSlotPayload(**data)


def make_lesson_payload(**overrides) -> LessonPayload:
    data = {
        'classId': 'Grade 1',
        'subject': 'Math',
        'teacherId': 't1',
        'date': '2025-03-03',
        'periodNumber': 2,
        'whiteboardImage': 'data:image/png;base64,iVBORw0KGgo=',
        'timeTaught': '09:15',
    }
    data.update(overrides)
    return LessonPayload(**data)


def make_homework_payload(**overrides) -> HomeworkPayload:
    data = {
        'classId': 'Grade 1',
        'subject': 'Science',
        'date': '2025-03-03',
        'description': 'Read chapter 4 and label the plant diagram.',
    }
    data.update(overrides)
    return HomeworkPayload(**data)


# =============================================================================
# Store & sync fixtures
# =============================================================================


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend) -> RecordStore:
    return RecordStore(backend, key='test_records').load()


@pytest.fixture
def populated_store(store) -> RecordStore:
    """Store with one of every record kind and a slot pointing at the staff member."""
    member = store.add_staff(make_staff_payload())
    store.upsert_schedule_slot(make_slot_payload(teacherId=member.id))
    store.add_lesson(make_lesson_payload(teacherId=member.id))
    store.add_homework(make_homework_payload())
    store.login('admin')
    return store


@pytest.fixture
def remote() -> FakeDocumentService:
    return FakeDocumentService()


@pytest.fixture
def sync_state() -> SyncStateMachine:
    return SyncStateMachine(display_interval=60)


@pytest.fixture
def sync_client(store, remote, sync_state) -> SyncClient:
    return SyncClient(store, remote, sync_state)


@pytest.fixture
def api_client(store, remote) -> TestClient:
    client = TestClient(create_app(store=store, remote=remote))
    response = client.post('/api/session/login', json={'username': 'admin', 'password': 'admin123'})
    assert response.status_code == 200
    client.headers['Authorization'] = f"Bearer {response.json()['token']}"
    return client
