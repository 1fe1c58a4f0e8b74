"""
Core value objects for the Athena engine.

Records are owned by the entity store; the engine only ever sees them as
immutable values parsed from store documents. Parsing is tolerant: school
records are routinely incomplete, so absent or malformed fields fall back to
documented defaults instead of raising.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from .enums import AttendanceStatus, ScopeKind, TimeWindow


UNKNOWN_SUBJECT = "Unknown"


def _field(document: Dict[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first non-None value among the given keys."""
    for name in names:
        value = document.get(name)
        if value is not None:
            return value
    return default


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_number(value: Any) -> Optional[float]:
    """Parse a numeric field, returning None for anything that is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_calendar_day(value: Any) -> Optional[date]:
    """Reduce a date-like field to its calendar day.

    Accepts dates, datetimes, ISO-8601 strings (a trailing ``Z`` is read as UTC),
    epoch seconds and serialized store timestamps of the form ``{"seconds": n}``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, dict) and "seconds" in value:
        value = value["seconds"]
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


@dataclass(frozen=True)
class Enrollment:
    """Join record between a student and a class."""
    student_id: Optional[str]
    class_id: Optional[str]
    enrollment_id: Optional[str] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Enrollment":
        return cls(
            student_id=_to_str(_field(document, "studentId", "student_id")),
            class_id=_to_str(_field(document, "classId", "class_id")),
            enrollment_id=_to_str(_field(document, "id", "_id")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {"id": self.enrollment_id, "studentId": self.student_id, "classId": self.class_id}


@dataclass(frozen=True)
class ClassRecord:
    """A class (course section) taught by one teacher."""
    class_id: Optional[str]
    teacher_id: Optional[str] = None
    name: Optional[str] = None
    subject: str = UNKNOWN_SUBJECT
    schedule: Any = None
    capacity: Optional[int] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ClassRecord":
        capacity = to_number(document.get("capacity"))
        return cls(
            class_id=_to_str(_field(document, "id", "_id", "classId", "class_id")),
            teacher_id=_to_str(_field(document, "teacherId", "teacher_id", "teacherEmail", "teacher")),
            name=_to_str(document.get("name")),
            subject=_to_str(document.get("subject")) or UNKNOWN_SUBJECT,
            schedule=document.get("schedule"),
            capacity=int(capacity) if capacity is not None else None,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.class_id,
            "teacherId": self.teacher_id,
            "name": self.name,
            "subject": self.subject,
            "schedule": self.schedule,
            "capacity": self.capacity,
        }


@dataclass(frozen=True)
class Assignment:
    """A piece of work set for a class.

    ``total_points`` is None whenever the stored value is absent, non-numeric
    or not positive; such an assignment is ungraded work.
    """
    assignment_id: Optional[str]
    class_id: Optional[str]
    title: Optional[str] = None
    due_date: Optional[date] = None
    total_points: Optional[float] = None

    @property
    def is_gradable(self) -> bool:
        return self.total_points is not None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Assignment":
        total_points = to_number(_field(document, "totalPoints", "total_points"))
        if total_points is not None and total_points <= 0:
            total_points = None
        return cls(
            assignment_id=_to_str(_field(document, "id", "_id", "assignmentId", "assignment_id")),
            class_id=_to_str(_field(document, "classId", "class_id")),
            title=_to_str(document.get("title")),
            due_date=to_calendar_day(_field(document, "dueDate", "due_date")),
            total_points=total_points,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.assignment_id,
            "classId": self.class_id,
            "title": self.title,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "totalPoints": self.total_points,
        }


@dataclass(frozen=True)
class Submission:
    """A student's submission for an assignment; ``grade`` None means not yet graded."""
    submission_id: Optional[str]
    assignment_id: Optional[str]
    student_id: Optional[str]
    submitted_on: Optional[date] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None

    @property
    def is_graded(self) -> bool:
        return self.grade is not None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Submission":
        return cls(
            submission_id=_to_str(_field(document, "id", "_id", "submissionId", "submission_id")),
            assignment_id=_to_str(_field(document, "assignmentId", "assignment_id")),
            student_id=_to_str(_field(document, "studentId", "student_id")),
            submitted_on=to_calendar_day(_field(document, "submittedAt", "submitted_at")),
            grade=to_number(_field(document, "grade", "score")),
            feedback=_to_str(document.get("feedback")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.submission_id,
            "assignmentId": self.assignment_id,
            "studentId": self.student_id,
            "submittedAt": self.submitted_on.isoformat() if self.submitted_on else None,
            "grade": self.grade,
            "feedback": self.feedback,
        }


@dataclass(frozen=True)
class AttendanceRecord:
    """Attendance of one student at one class session.

    Any status other than ``present`` counts as absent. Documents that only
    carry the older boolean ``present`` field are read through it.
    """
    class_id: Optional[str]
    student_id: Optional[str]
    day: Optional[date] = None
    status: AttendanceStatus = AttendanceStatus.ABSENT

    @property
    def is_present(self) -> bool:
        return self.status is AttendanceStatus.PRESENT

    @property
    def key(self):
        return (self.class_id, self.student_id, self.day)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "AttendanceRecord":
        raw_status = document.get("status")
        if raw_status is None and "present" in document:
            present = bool(document.get("present"))
        else:
            present = str(raw_status).strip().lower() == AttendanceStatus.PRESENT.value
        return cls(
            class_id=_to_str(_field(document, "classId", "class_id")),
            student_id=_to_str(_field(document, "studentId", "student_id")),
            day=to_calendar_day(_field(document, "date", "day")),
            status=AttendanceStatus.PRESENT if present else AttendanceStatus.ABSENT,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "classId": self.class_id,
            "studentId": self.student_id,
            "date": self.day.isoformat() if self.day else None,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class Scope:
    """The class, student or teacher a computation is performed for."""
    kind: ScopeKind
    identifier: str
    window: TimeWindow = field(default=TimeWindow.ALL)

    @classmethod
    def for_class(cls, class_id: str, window: TimeWindow = TimeWindow.ALL) -> "Scope":
        return cls(ScopeKind.CLASS, class_id, window)

    @classmethod
    def for_student(cls, student_id: str, window: TimeWindow = TimeWindow.ALL) -> "Scope":
        return cls(ScopeKind.STUDENT, student_id, window)

    @classmethod
    def for_teacher(cls, teacher_id: str, window: TimeWindow = TimeWindow.ALL) -> "Scope":
        return cls(ScopeKind.TEACHER, teacher_id, window)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identifier}@{self.window.value}"
