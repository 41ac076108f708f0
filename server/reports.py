from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from record_models import PERIODS, HomeworkRecord, LessonRecord, StoreState, weekday_for

ALL_CLASSES = 'All'


def _class_matches(record_class: str, class_id: str) -> bool:
    return class_id == ALL_CLASSES or record_class == class_id


def filter_lessons(state: StoreState, on_date: str, class_id: str = ALL_CLASSES) -> List[LessonRecord]:
    return [lesson for lesson in state.lessons if lesson.date == on_date and _class_matches(lesson.classId, class_id)]


def filter_homework(state: StoreState, on_date: str, class_id: str = ALL_CLASSES) -> List[HomeworkRecord]:
    return [item for item in state.homework if item.date == on_date and _class_matches(item.classId, class_id)]


def dashboard_summary(state: StoreState, today: date, top: int = 5) -> Dict[str, Any]:
    today_text = today.isoformat()
    active = [member for member in state.teachers if member.isActive]
    engagement = [
        {
            'id': member.id,
            'fullName': member.fullName,
            'specialization': member.specialization,
            'lessonCount': sum(1 for lesson in state.lessons if lesson.teacherId == member.id),
        }
        for member in active[:top]
    ]
    return {
        'date': today_text,
        'activeStaff': len(active),
        'lessonsToday': sum(1 for lesson in state.lessons if lesson.date == today_text),
        'homeworkToday': sum(1 for item in state.homework if item.date == today_text),
        'engagement': engagement,
    }


def daily_sheet(state: StoreState, on_date: str, class_id: str) -> Dict[str, Any]:
    """Scheduled periods for one class on one date, with any lesson already logged."""
    day = weekday_for(on_date)
    staff_by_id = {member.id: member for member in state.teachers}
    periods: List[Dict[str, Any]] = []
    for period in PERIODS:
        slot = next(
            (s for s in state.timetable if s.day == day and s.classId == class_id and s.periodNumber == period),
            None,
        )
        logged: Optional[LessonRecord] = next(
            (
                lesson for lesson in state.lessons
                if lesson.date == on_date and lesson.classId == class_id and lesson.periodNumber == period
            ),
            None,
        )
        staff = staff_by_id.get(slot.teacherId) if slot and slot.teacherId else None
        periods.append({
            'periodNumber': period,
            'slot': slot.model_dump(mode='json') if slot else None,
            'teacherName': staff.fullName if staff else None,
            'lesson': logged.model_dump(mode='json') if logged else None,
        })
    return {'date': on_date, 'day': day, 'classId': class_id, 'periods': periods}
