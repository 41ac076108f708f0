"""Tests for dashboard and report queries."""

from datetime import date

import pytest

import reports
from conftest import (
    make_homework_payload,
    make_lesson_payload,
    make_slot_payload,
    make_staff_payload,
)
from record_models import weekday_for


class TestWeekday:
    @pytest.mark.parametrize('day_text, expected', [
        ('2025-03-03', 'Monday'),
        ('2025-03-05', 'Wednesday'),
        ('2025-03-07', 'Friday'),
        ('2025-03-08', 'Monday'),
        ('2025-03-09', 'Monday'),
    ])
    def test_school_day(self, day_text, expected):
        assert weekday_for(day_text) == expected


class TestFilters:
    def test_filter_by_date_and_class(self, store):
        store.add_lesson(make_lesson_payload(classId='Grade 1'))
        store.add_lesson(make_lesson_payload(classId='KG1'))
        store.add_lesson(make_lesson_payload(date='2025-03-04'))

        state = store.state()

        assert len(reports.filter_lessons(state, '2025-03-03')) == 2
        assert [lesson.classId for lesson in reports.filter_lessons(state, '2025-03-03', 'KG1')] == ['KG1']

    def test_filter_homework(self, store):
        store.add_homework(make_homework_payload(classId='Grade 2'))
        store.add_homework(make_homework_payload(date='2025-03-10'))

        state = store.state()

        assert len(reports.filter_homework(state, '2025-03-03', reports.ALL_CLASSES)) == 1
        assert reports.filter_homework(state, '2025-03-03', 'Grade 1') == []


class TestDashboard:
    def test_counts_and_engagement(self, store):
        active = store.add_staff(make_staff_payload(fullName='Active One'))
        retired = store.add_staff(make_staff_payload(fullName='Retired'))
        store.toggle_staff_status(retired.id, year=2024)
        store.add_lesson(make_lesson_payload(teacherId=active.id))
        store.add_lesson(make_lesson_payload(teacherId=active.id, date='2025-02-01'))
        store.add_homework(make_homework_payload())

        summary = reports.dashboard_summary(store.state(), date(2025, 3, 3))

        assert summary['activeStaff'] == 1
        assert summary['lessonsToday'] == 1
        assert summary['homeworkToday'] == 1
        assert summary['engagement'] == [{
            'id': active.id,
            'fullName': 'Active One',
            'specialization': 'Mathematics',
            'lessonCount': 2,
        }]

    def test_engagement_is_limited(self, store):
        for index in range(7):
            store.add_staff(make_staff_payload(fullName=f'Staff {index}'))

        summary = reports.dashboard_summary(store.state(), date(2025, 3, 3))

        assert summary['activeStaff'] == 7
        assert len(summary['engagement']) == 5


class TestDailySheet:
    def test_lists_every_period_with_slot_and_lesson(self, store):
        member = store.add_staff(make_staff_payload())
        store.upsert_schedule_slot(make_slot_payload(teacherId=member.id))
        lesson = store.add_lesson(make_lesson_payload(teacherId=member.id))

        sheet = reports.daily_sheet(store.state(), '2025-03-03', 'Grade 1')

        assert sheet['day'] == 'Monday'
        assert [p['periodNumber'] for p in sheet['periods']] == [1, 2, 3, 4, 5]
        second = sheet['periods'][1]
        assert second['slot']['subject'] == 'Math'
        assert second['teacherName'] == 'Amina Yusuf'
        assert second['lesson']['id'] == lesson.id
        assert sheet['periods'][0]['slot'] is None

    def test_unassigned_slot_has_no_teacher(self, store):
        store.upsert_schedule_slot(make_slot_payload(teacherId=''))

        sheet = reports.daily_sheet(store.state(), '2025-03-03', 'Grade 1')

        assert sheet['periods'][1]['teacherName'] is None
