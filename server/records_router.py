import secrets
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import reports
import settings
import snapshot_codec
from errors import (
    MalformedSnapshot,
    MissingCredential,
    MissingRemoteId,
    NotFound,
    RecordsError,
    RemoteNotFound,
    SyncFailed,
    SyncInProgress,
)
from record_models import (
    HomeworkPayload,
    LessonPayload,
    ScheduleSlotPayload,
    StaffMember,
    StaffPayload,
)
from record_store import RecordStore

records_router = APIRouter(prefix='/api', tags=['records'])

_STATUS_CODES = {
    NotFound: 404,
    MalformedSnapshot: 422,
    MissingCredential: 400,
    MissingRemoteId: 400,
    RemoteNotFound: 404,
    SyncInProgress: 409,
    SyncFailed: 502,
}


class LoginPayload(BaseModel):
    username: str
    password: str


class LogLessonPayload(BaseModel):
    classId: str
    date: str
    periodNumber: int
    whiteboardImage: str
    timeTaught: Optional[str] = None


def http_error(exc: RecordsError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail={'error': exc.detail, 'reason': exc.reason})


def get_store(request: Request) -> RecordStore:
    return request.app.state.record_store


def _session_token(request: Request) -> str:
    auth_header = request.headers.get('Authorization') or request.headers.get('authorization')
    if not auth_header or not auth_header.lower().startswith('bearer '):
        raise HTTPException(status_code=401, detail='missing-session-token')
    return auth_header.split(' ', 1)[1].strip()


def require_session(request: Request) -> RecordStore:
    store = get_store(request)
    if store.session_user(_session_token(request)) is None:
        raise HTTPException(status_code=401, detail='invalid-session-token')
    return store


def _require_confirmation(confirm: bool) -> None:
    if not confirm:
        raise HTTPException(status_code=400, detail='confirmation-required')


# --- Session -----------------------------------------------------------------


@records_router.post('/session/login')
def login(request: Request, payload: LoginPayload):
    valid_user = secrets.compare_digest(payload.username, settings.ADMIN_USERNAME)
    valid_password = secrets.compare_digest(payload.password, settings.ADMIN_PASSWORD)
    if not (valid_user and valid_password):
        raise HTTPException(status_code=401, detail='invalid-credentials')
    store = get_store(request)
    token = store.login(payload.username)
    return {'ok': True, 'user': payload.username, 'token': token, 'warning': store.load_warning}


@records_router.post('/session/logout')
def logout(request: Request):
    require_session(request).logout()
    return {'ok': True}


@records_router.get('/session')
def session_info(request: Request):
    store = require_session(request)
    return {
        'user': store.current_user,
        'loadWarning': store.load_warning,
        'saveError': store.save_error,
    }


# --- Staff -------------------------------------------------------------------


@records_router.get('/staff')
def list_staff(request: Request):
    store = require_session(request)
    return {'items': [member.model_dump(mode='json') for member in store.staff]}


@records_router.post('/staff')
def add_staff(request: Request, payload: StaffPayload):
    store = require_session(request)
    return {'item': store.add_staff(payload).model_dump(mode='json')}


@records_router.put('/staff/{staff_id}')
def update_staff(request: Request, staff_id: str, payload: StaffPayload):
    store = require_session(request)
    existing = store.get_staff(staff_id)
    if existing is None:
        raise http_error(NotFound('staff', staff_id))
    record = StaffMember(**{**existing.model_dump(), **payload.model_dump()})
    try:
        return {'item': store.update_staff(record).model_dump(mode='json')}
    except NotFound as exc:
        raise http_error(exc) from exc


@records_router.post('/staff/{staff_id}/toggle')
def toggle_staff(request: Request, staff_id: str):
    store = require_session(request)
    try:
        return {'item': store.toggle_staff_status(staff_id).model_dump(mode='json')}
    except NotFound as exc:
        raise http_error(exc) from exc


@records_router.delete('/staff/{staff_id}')
def delete_staff(request: Request, staff_id: str, confirm: bool = False):
    store = require_session(request)
    _require_confirmation(confirm)
    try:
        store.delete_staff(staff_id)
    except NotFound as exc:
        raise http_error(exc) from exc
    return {'ok': True}


# --- Schedule ----------------------------------------------------------------


@records_router.get('/schedule')
def list_schedule(request: Request, day: Optional[str] = None, class_id: Optional[str] = None):
    store = require_session(request)
    slots = [
        slot for slot in store.schedule_slots
        if (day is None or slot.day == day) and (class_id is None or slot.classId == class_id)
    ]
    slots.sort(key=lambda slot: slot.periodNumber)
    return {'items': [slot.model_dump(mode='json') for slot in slots]}


@records_router.put('/schedule')
def upsert_schedule_slot(request: Request, payload: ScheduleSlotPayload):
    store = require_session(request)
    return {'item': store.upsert_schedule_slot(payload).model_dump(mode='json')}


@records_router.delete('/schedule/{slot_id}')
def clear_schedule_slot(request: Request, slot_id: str):
    store = require_session(request)
    try:
        store.clear_schedule_slot(slot_id)
    except NotFound as exc:
        raise http_error(exc) from exc
    return {'ok': True}


# --- Lessons -----------------------------------------------------------------


@records_router.get('/lessons')
def list_lessons(request: Request, date: Optional[str] = None, class_id: str = reports.ALL_CLASSES):
    store = require_session(request)
    if date is None:
        lessons = store.lessons
    else:
        lessons = reports.filter_lessons(store.state(), date, class_id)
    return {'items': [lesson.model_dump(mode='json') for lesson in lessons]}


@records_router.post('/lessons')
def add_lesson(request: Request, payload: LessonPayload):
    store = require_session(request)
    return {'item': store.add_lesson(payload).model_dump(mode='json')}


@records_router.post('/lessons/log')
def log_lesson(request: Request, payload: LogLessonPayload):
    store = require_session(request)
    try:
        lesson = store.log_lesson_for_period(
            payload.classId,
            payload.date,
            payload.periodNumber,
            payload.whiteboardImage,
            payload.timeTaught,
        )
    except NotFound as exc:
        raise http_error(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail='invalid-date') from exc
    return {'item': lesson.model_dump(mode='json')}


@records_router.delete('/lessons/{lesson_id}')
def delete_lesson(request: Request, lesson_id: str, confirm: bool = False):
    store = require_session(request)
    _require_confirmation(confirm)
    try:
        store.delete_lesson(lesson_id)
    except NotFound as exc:
        raise http_error(exc) from exc
    return {'ok': True}


# --- Homework ----------------------------------------------------------------


@records_router.get('/homework')
def list_homework(request: Request, date: Optional[str] = None, class_id: str = reports.ALL_CLASSES):
    store = require_session(request)
    if date is None:
        items = store.homework
    else:
        items = reports.filter_homework(store.state(), date, class_id)
    return {'items': [item.model_dump(mode='json') for item in items]}


@records_router.post('/homework')
def add_homework(request: Request, payload: HomeworkPayload):
    store = require_session(request)
    return {'item': store.add_homework(payload).model_dump(mode='json')}


@records_router.delete('/homework/{homework_id}')
def delete_homework(request: Request, homework_id: str, confirm: bool = False):
    store = require_session(request)
    _require_confirmation(confirm)
    try:
        store.delete_homework(homework_id)
    except NotFound as exc:
        raise http_error(exc) from exc
    return {'ok': True}


# --- Reports -----------------------------------------------------------------


@records_router.get('/dashboard')
def dashboard(request: Request, today: Optional[date] = None):
    store = require_session(request)
    return reports.dashboard_summary(store.state(), today or date.today())


@records_router.get('/daily-sheet')
def daily_sheet(request: Request, date: str, class_id: str):
    store = require_session(request)
    try:
        return reports.daily_sheet(store.state(), date, class_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail='invalid-date') from exc


@records_router.get('/export')
def export_records(request: Request):
    store = require_session(request)
    filename = snapshot_codec.backup_filename(date.today())
    return JSONResponse(
        snapshot_codec.serialize(store.state()),
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )
