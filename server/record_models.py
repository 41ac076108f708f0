from __future__ import annotations

from datetime import date
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DAYS: Tuple[str, ...] = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday')
CLASSES: Tuple[str, ...] = ('KG1', 'KG2', 'Grade 1', 'Grade 2', 'Grade 3', 'Grade 4')
PERIODS: Tuple[int, ...] = (1, 2, 3, 4, 5)

DayOfWeek = Literal['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']
SlotKey = Tuple[str, str, int]


class Gender(str, Enum):
    MALE = 'Male'
    FEMALE = 'Female'
    OTHER = 'Other'


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _ensure_iso_date(value: str) -> str:
    date.fromisoformat(value)
    return value


def weekday_for(day_text: str) -> str:
    """Map an ISO date to its school day; weekends fall back to Monday."""
    index = date.fromisoformat(day_text).weekday()
    return DAYS[index] if index < len(DAYS) else DAYS[0]


# --- Staff -------------------------------------------------------------------


class StaffPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    fullName: str
    gender: Gender = Gender.MALE
    phoneNumber: str = ''
    email: Optional[str] = None
    specialization: Optional[str] = None
    yearStarted: int

    @field_validator('email', 'specialization')
    @classmethod
    def _normalize_optional(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class StaffMember(StaffPayload):
    id: str
    isActive: bool = True
    yearEnded: Optional[int] = None

    @model_validator(mode='after')
    def _check_status(self) -> 'StaffMember':
        if self.isActive and self.yearEnded is not None:
            raise ValueError('active staff cannot have yearEnded')
        if not self.isActive and self.yearEnded is None:
            raise ValueError('inactive staff must have yearEnded')
        return self


# --- Schedule ----------------------------------------------------------------


class ScheduleSlotPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    day: DayOfWeek
    classId: str
    periodNumber: int
    subject: str = ''
    teacherId: str = ''
    startTime: str = '08:00'
    endTime: str = '09:00'

    @property
    def key(self) -> SlotKey:
        return (self.day, self.classId, self.periodNumber)


class ScheduleSlot(ScheduleSlotPayload):
    id: str


# --- Lessons & homework ------------------------------------------------------


class LessonPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    classId: str
    subject: str
    teacherId: str = ''
    date: str
    periodNumber: int
    whiteboardImage: str = ''
    timeTaught: str = ''

    @field_validator('date')
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _ensure_iso_date(value)


class LessonRecord(LessonPayload):
    id: str


class HomeworkPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    classId: str
    subject: str
    date: str
    description: str = ''
    image: Optional[str] = None

    @field_validator('date')
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _ensure_iso_date(value)

    @field_validator('image')
    @classmethod
    def _normalize_image(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class HomeworkRecord(HomeworkPayload):
    id: str


# --- Sync credential & whole state -------------------------------------------


class SyncCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None
    remoteId: Optional[str] = None

    @field_validator('token', 'remoteId')
    @classmethod
    def _normalize(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

    def masked(self) -> Optional[str]:
        if not self.token:
            return None
        return f'{self.token[:4]}...{self.token[-4:]}' if len(self.token) > 12 else '****'


class StoreState(BaseModel):
    currentUser: Optional[str] = None
    teachers: List[StaffMember] = Field(default_factory=list)
    timetable: List[ScheduleSlot] = Field(default_factory=list)
    lessons: List[LessonRecord] = Field(default_factory=list)
    homework: List[HomeworkRecord] = Field(default_factory=list)
    credential: SyncCredential = Field(default_factory=SyncCredential)

    def collections(self) -> 'StoreState':
        """Copy of this state with the credential dropped, for comparing datasets."""
        return self.model_copy(update={'credential': SyncCredential()})
