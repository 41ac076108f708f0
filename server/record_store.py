from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime
from threading import RLock
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

import settings
import snapshot_codec
from errors import MalformedSnapshot, NotFound
from record_models import (
    HomeworkPayload,
    HomeworkRecord,
    LessonPayload,
    LessonRecord,
    ScheduleSlot,
    ScheduleSlotPayload,
    SlotKey,
    StaffMember,
    StaffPayload,
    StoreState,
    SyncCredential,
    weekday_for,
)
from storage import StorageBackend, StorageError, ensure_defaults

logger = logging.getLogger(__name__)

TOKEN_FIELD = 'githubToken'
REMOTE_ID_FIELD = 'githubGistId'


def _new_id() -> str:
    return str(uuid.uuid4())


class RecordStore:
    """Canonical in-memory dataset, persisted through a storage backend.

    Every mutation swaps in fully built collections before saving, so readers
    never observe a partially applied change. Saving is fail-soft: a backend
    error is logged and kept in ``save_error`` while the in-memory state keeps
    the change.
    """

    def __init__(self, backend: StorageBackend, key: str = settings.RECORDS_STORAGE_KEY):
        self.backend = backend
        self.key = key
        self.load_warning: Optional[str] = None
        self.save_error: Optional[str] = None
        self._lock = RLock()
        # session tokens live in memory only; a restart signs everyone out
        self._sessions: Dict[str, str] = {}
        self._apply(StoreState())

    def _apply(self, state: StoreState) -> None:
        self._current_user = state.currentUser
        self._staff: List[StaffMember] = list(state.teachers)
        self._slots: Dict[SlotKey, ScheduleSlot] = {slot.key: slot for slot in state.timetable}
        self._lessons: List[LessonRecord] = list(state.lessons)
        self._homework: List[HomeworkRecord] = list(state.homework)
        self._credential = state.credential

    # --- Persistence ---------------------------------------------------------

    def load(self) -> 'RecordStore':
        with self._lock:
            self.load_warning = None
            try:
                document = self.backend.read(self.key)
                if document is None:
                    state = StoreState()
                else:
                    credential = SyncCredential(
                        token=document.get(TOKEN_FIELD),
                        remoteId=document.get(REMOTE_ID_FIELD),
                    )
                    state = snapshot_codec.deserialize(ensure_defaults(document), credential=credential)
            except (StorageError, MalformedSnapshot, ValidationError) as exc:
                self.load_warning = f'Saved records could not be loaded, starting empty: {exc}'
                logger.warning(self.load_warning)
                state = StoreState()
            self._apply(state)
        return self

    def to_document(self) -> Dict[str, Any]:
        state = self.state()
        document = snapshot_codec.serialize(state)
        if state.credential.token:
            document[TOKEN_FIELD] = state.credential.token
        if state.credential.remoteId:
            document[REMOTE_ID_FIELD] = state.credential.remoteId
        return document

    def save(self) -> bool:
        with self._lock:
            try:
                self.backend.write(self.key, self.to_document())
            except StorageError as exc:
                self.save_error = str(exc)
                logger.warning('Saving records failed, changes are kept in memory only: %s', exc)
                return False
            self.save_error = None
            return True

    # --- Read access ---------------------------------------------------------

    def state(self) -> StoreState:
        with self._lock:
            return StoreState(
                currentUser=self._current_user,
                teachers=list(self._staff),
                timetable=list(self._slots.values()),
                lessons=list(self._lessons),
                homework=list(self._homework),
                credential=self._credential,
            )

    @property
    def current_user(self) -> Optional[str]:
        return self._current_user

    @property
    def credential(self) -> SyncCredential:
        return self._credential

    @property
    def staff(self) -> List[StaffMember]:
        return list(self._staff)

    @property
    def schedule_slots(self) -> List[ScheduleSlot]:
        return list(self._slots.values())

    @property
    def lessons(self) -> List[LessonRecord]:
        return list(self._lessons)

    @property
    def homework(self) -> List[HomeworkRecord]:
        return list(self._homework)

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        return next((member for member in self._staff if member.id == staff_id), None)

    def find_slot(self, day: str, class_id: str, period_number: int) -> Optional[ScheduleSlot]:
        return self._slots.get((day, class_id, period_number))

    # --- Staff ---------------------------------------------------------------

    def add_staff(self, payload: StaffPayload) -> StaffMember:
        with self._lock:
            member = StaffMember(**{**payload.model_dump(), 'id': _new_id(), 'isActive': True, 'yearEnded': None})
            self._staff = [*self._staff, member]
            self.save()
        logger.info('Added staff member %s', member.id)
        return member

    def update_staff(self, record: StaffMember) -> StaffMember:
        with self._lock:
            if self.get_staff(record.id) is None:
                raise NotFound('staff', record.id)
            self._staff = [record if member.id == record.id else member for member in self._staff]
            self.save()
        return record

    def delete_staff(self, staff_id: str) -> None:
        with self._lock:
            if self.get_staff(staff_id) is None:
                raise NotFound('staff', staff_id)
            slots = {
                key: slot.model_copy(update={'teacherId': ''}) if slot.teacherId == staff_id else slot
                for key, slot in self._slots.items()
            }
            self._staff = [member for member in self._staff if member.id != staff_id]
            self._slots = slots
            self.save()
        logger.info('Deleted staff member %s', staff_id)

    def toggle_staff_status(self, staff_id: str, *, year: Optional[int] = None) -> StaffMember:
        with self._lock:
            member = self.get_staff(staff_id)
            if member is None:
                raise NotFound('staff', staff_id)
            if member.isActive:
                changes = {'isActive': False, 'yearEnded': year or datetime.now().year}
            else:
                changes = {'isActive': True, 'yearEnded': None}
            updated = StaffMember(**{**member.model_dump(), **changes})
            self._staff = [updated if item.id == staff_id else item for item in self._staff]
            self.save()
        return updated

    # --- Schedule ------------------------------------------------------------

    def upsert_schedule_slot(self, entry: ScheduleSlotPayload) -> ScheduleSlot:
        with self._lock:
            existing = self._slots.get(entry.key)
            # ids are store-assigned; an incoming id never names a new slot
            slot_id = existing.id if existing else _new_id()
            slot = ScheduleSlot(**{**entry.model_dump(), 'id': slot_id})
            slots = dict(self._slots)
            slots[slot.key] = slot
            self._slots = slots
            self.save()
        return slot

    def clear_schedule_slot(self, slot_id: str) -> None:
        with self._lock:
            key = next((key for key, slot in self._slots.items() if slot.id == slot_id), None)
            if key is None:
                raise NotFound('schedule slot', slot_id)
            self._slots = {k: slot for k, slot in self._slots.items() if k != key}
            self.save()

    # --- Lessons -------------------------------------------------------------

    def add_lesson(self, payload: LessonPayload) -> LessonRecord:
        with self._lock:
            lesson = LessonRecord(**{**payload.model_dump(), 'id': _new_id()})
            self._lessons = [*self._lessons, lesson]
            self.save()
        return lesson

    def log_lesson_for_period(
        self,
        class_id: str,
        lesson_date: str,
        period_number: int,
        whiteboard_image: str,
        time_taught: Optional[str] = None,
    ) -> LessonRecord:
        day = weekday_for(lesson_date)
        slot = self.find_slot(day, class_id, period_number)
        if slot is None:
            raise NotFound('schedule slot', f'{day}/{class_id}/{period_number}')
        return self.add_lesson(LessonPayload(
            classId=class_id,
            subject=slot.subject,
            teacherId=slot.teacherId,
            date=lesson_date,
            periodNumber=period_number,
            whiteboardImage=whiteboard_image,
            timeTaught=time_taught or datetime.now().strftime('%H:%M'),
        ))

    def delete_lesson(self, lesson_id: str) -> None:
        with self._lock:
            if not any(lesson.id == lesson_id for lesson in self._lessons):
                raise NotFound('lesson', lesson_id)
            self._lessons = [lesson for lesson in self._lessons if lesson.id != lesson_id]
            self.save()

    # --- Homework ------------------------------------------------------------

    def add_homework(self, payload: HomeworkPayload) -> HomeworkRecord:
        with self._lock:
            record = HomeworkRecord(**{**payload.model_dump(), 'id': _new_id()})
            self._homework = [*self._homework, record]
            self.save()
        return record

    def delete_homework(self, homework_id: str) -> None:
        with self._lock:
            if not any(record.id == homework_id for record in self._homework):
                raise NotFound('homework', homework_id)
            self._homework = [record for record in self._homework if record.id != homework_id]
            self.save()

    # --- Session & credential ------------------------------------------------

    def login(self, username: str) -> str:
        """Mark ``username`` as the current user and return a new session token."""
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._current_user = username
            self._sessions = {**self._sessions, token: username}
            self.save()
        return token

    def session_user(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return self._sessions.get(token)

    def logout(self) -> None:
        with self._lock:
            self._current_user = None
            self._sessions = {}
            self.save()

    def set_credential(self, token: Optional[str], remote_id: Optional[str]) -> SyncCredential:
        with self._lock:
            self._credential = SyncCredential(token=token, remoteId=remote_id)
            self.save()
        return self._credential

    def clear_credential(self) -> None:
        self.set_credential(None, None)

    def replace_all(self, state: StoreState) -> None:
        with self._lock:
            self._apply(state)
            self.save()
        logger.info(
            'Replaced records: %d staff, %d slots, %d lessons, %d homework',
            len(state.teachers), len(state.timetable), len(state.lessons), len(state.homework),
        )
