from datetime import date, datetime, timezone

import pytest

from athena.core import Collection, ValidationError
from athena.services import RecordService


@pytest.fixture
def records(store):
    return RecordService(store)


def test_create_class(empty_store):
    created = RecordService(empty_store).create_class("Chemistry", "t3", subject="Science", capacity=25)

    assert created["teacherId"] == "t3"
    assert empty_store.get(Collection.CLASSES, created["id"])["subject"] == "Science"


@pytest.mark.parametrize("kwargs", [
    {"name": "", "teacher_id": "t1"},
    {"name": "Chemistry", "teacher_id": ""},
    {"name": "Chemistry", "teacher_id": "t1", "capacity": -1},
])
def test_create_class_validation(records, kwargs):
    with pytest.raises(ValidationError):
        records.create_class(**kwargs)


def test_enroll_is_idempotent(records, store):
    first = records.enroll("s3", "c1")
    second = records.enroll("s3", "c1")

    assert first["id"] == second["id"]
    assert store.count(Collection.ENROLLMENTS) == 4


def test_enroll_in_unknown_class(records):
    with pytest.raises(ValidationError) as exc_info:
        records.enroll("s1", "missing")

    assert exc_info.value.error_code == "NOT_FOUND"


def test_unenroll(records):
    assert records.unenroll("s2", "c1") is True
    assert records.unenroll("s2", "c1") is False


def test_create_assignment(records):
    assignment = records.create_assignment("c1", "Quiz 2", due_date="2024-03-12T00:00:00Z")

    assert assignment["totalPoints"] == 100.0
    assert assignment["dueDate"] == "2024-03-12"


@pytest.mark.parametrize("kwargs", [
    {"total_points": 0},
    {"total_points": -10},
    {"due_date": "someday"},
    {"title": ""},
])
def test_create_assignment_validation(records, kwargs):
    arguments = {"class_id": "c1", "title": "Quiz 2"}
    arguments.update(kwargs)

    with pytest.raises(ValidationError):
        records.create_assignment(**arguments)


def test_resubmission_replaces_the_submission(records, store):
    first = records.submit("a2", "s2", content="draft", submitted_at=datetime(2024, 3, 4, tzinfo=timezone.utc))
    second = records.submit("a2", "s2", content="final")

    assert first["id"] == second["id"]
    assert store.get(Collection.SUBMISSIONS, first["id"])["content"] == "final"


def test_grade_submission(records, store):
    graded = records.grade("sub3", 75, feedback="Good work")

    assert graded["grade"] == 75.0
    assert graded["status"] == "graded"
    assert store.get(Collection.SUBMISSIONS, "sub3")["feedback"] == "Good work"


@pytest.mark.parametrize("grade", [-1, 101, "n/a"])
def test_grade_validation(records, grade):
    with pytest.raises(ValidationError):
        records.grade("sub3", grade)


def test_grade_unknown_submission(records):
    with pytest.raises(ValidationError) as exc_info:
        records.grade("nope", 10)

    assert exc_info.value.error_code == "NOT_FOUND"


def test_marking_the_same_day_twice_overwrites(records, store):
    records.mark_attendance("c1", "s2", "absent", day=date(2024, 3, 6))
    records.mark_attendance("c1", "s2", "Present", day="2024-03-06")

    rows = [row for row in store.query(Collection.ATTENDANCE) if row["studentId"] == "s2"]

    assert len(rows) == 1
    assert rows[0]["status"] == "present"
    assert rows[0]["id"] == "c1_s2_2024-03-06"


@pytest.mark.parametrize("status, day", [("late", "2024-03-06"), ("present", "not a day")])
def test_mark_attendance_validation(records, status, day):
    with pytest.raises(ValidationError):
        records.mark_attendance("c1", "s2", status, day=day)
