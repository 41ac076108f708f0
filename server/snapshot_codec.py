"""Snapshot encoding for the remote backup document.

A snapshot carries every record collection of the store and never the sync
credential: :func:`serialize` drops it and :func:`deserialize` takes the
caller's credential as an explicit argument and attaches it to the decoded
state unchanged.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from errors import MalformedSnapshot
from record_models import (
    HomeworkRecord,
    LessonRecord,
    ScheduleSlot,
    SlotKey,
    StaffMember,
    StoreState,
    SyncCredential,
)

SNAPSHOT_COLLECTIONS = ('teachers', 'timetable', 'lessons', 'homework')

ModelT = TypeVar('ModelT', bound=BaseModel)


def _dump(records: List[BaseModel]) -> List[Dict[str, Any]]:
    return [record.model_dump(mode='json', exclude_none=True) for record in records]


def serialize(state: StoreState) -> Dict[str, Any]:
    return {
        'currentUser': state.currentUser,
        'teachers': _dump(state.teachers),
        'timetable': _dump(state.timetable),
        'lessons': _dump(state.lessons),
        'homework': _dump(state.homework),
    }


def _load(collection: str, items: List[Any], model: Type[ModelT]) -> List[ModelT]:
    records: List[ModelT] = []
    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            first = exc.errors()[0]
            location = '.'.join(str(part) for part in first.get('loc', ()))
            raise MalformedSnapshot(
                f'{collection}[{index}] is invalid: {location or "record"} {first.get("msg", "")}'.strip()
            ) from exc
    return records


def deserialize(document: Any, *, credential: SyncCredential) -> StoreState:
    if not isinstance(document, dict):
        raise MalformedSnapshot('snapshot must be a JSON object')
    for key in SNAPSHOT_COLLECTIONS:
        if key not in document:
            raise MalformedSnapshot(f'snapshot is missing the {key!r} collection')
        if not isinstance(document[key], list):
            raise MalformedSnapshot(f'snapshot collection {key!r} must be a list')

    slots: Dict[SlotKey, ScheduleSlot] = {}
    for slot in _load('timetable', document['timetable'], ScheduleSlot):
        slots[slot.key] = slot

    current_user = document.get('currentUser')
    return StoreState(
        currentUser=current_user if isinstance(current_user, str) else None,
        teachers=_load('teachers', document['teachers'], StaffMember),
        timetable=list(slots.values()),
        lessons=_load('lessons', document['lessons'], LessonRecord),
        homework=_load('homework', document['homework'], HomeworkRecord),
        credential=credential,
    )


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


def loads(text: str) -> Dict[str, Any]:
    try:
        document = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise MalformedSnapshot(f'snapshot is not valid JSON: {exc}') from exc
    if not isinstance(document, dict):
        raise MalformedSnapshot('snapshot must be a JSON object')
    return document


def backup_filename(today: date) -> str:
    return f'academy_backup_{today.isoformat()}.json'
