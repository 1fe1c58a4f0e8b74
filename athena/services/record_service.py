"""
Record service: validated writes of school records to the entity store.

These are thin wrappers; every write goes through the store, whose change
notifications drive the rollup cache.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from ..core.entities import to_calendar_day, to_number
from ..core.enums import AttendanceStatus, Collection
from ..core.exceptions import ValidationError
from ..core.interfaces import Document, EntityStore, Predicate

logger = logging.getLogger(__name__)


class RecordService:
    """Creates and updates the records the aggregation engine reads."""

    def __init__(self, store: EntityStore):
        self._store = store

    def create_class(self, name: str, teacher_id: str, subject: Optional[str] = None,
                     schedule: Any = None, capacity: Optional[int] = None,
                     class_id: Optional[str] = None) -> Document:
        if not name or not teacher_id:
            raise ValidationError("Class name and teacher are required")
        if capacity is not None and capacity < 0:
            raise ValidationError("Capacity cannot be negative")
        return self._store.put(Collection.CLASSES, {
            "id": class_id,
            "name": name,
            "teacherId": teacher_id,
            "subject": subject,
            "schedule": schedule,
            "capacity": capacity,
        })

    def enroll(self, student_id: str, class_id: str) -> Document:
        """Enroll a student; enrolling twice returns the existing enrollment."""
        self._require(Collection.CLASSES, class_id, "Class")
        existing = self._store.query(Collection.ENROLLMENTS, [
            Predicate.eq("studentId", student_id),
            Predicate.eq("classId", class_id),
        ])
        if existing:
            return existing[0]
        return self._store.put(Collection.ENROLLMENTS, {"studentId": student_id, "classId": class_id})

    def unenroll(self, student_id: str, class_id: str) -> bool:
        removed = False
        for enrollment in self._store.query(Collection.ENROLLMENTS, [
            Predicate.eq("studentId", student_id),
            Predicate.eq("classId", class_id),
        ]):
            removed = self._store.delete(Collection.ENROLLMENTS, enrollment["id"]) or removed
        return removed

    def create_assignment(self, class_id: str, title: str, due_date: Any = None,
                          total_points: float = 100, assignment_id: Optional[str] = None) -> Document:
        self._require(Collection.CLASSES, class_id, "Class")
        if not title:
            raise ValidationError("Assignment title is required")
        points = to_number(total_points)
        if points is None or points <= 0:
            raise ValidationError("Total points must be a positive number")
        due = to_calendar_day(due_date)
        if due_date is not None and due is None:
            raise ValidationError(f"Unrecognised due date: {due_date}")
        return self._store.put(Collection.ASSIGNMENTS, {
            "id": assignment_id,
            "classId": class_id,
            "title": title,
            "dueDate": due.isoformat() if due else None,
            "totalPoints": points,
        })

    def submit(self, assignment_id: str, student_id: str, content: Optional[str] = None,
               submitted_at: Optional[datetime] = None) -> Document:
        """Record a submission; resubmitting replaces content and clears nothing else."""
        self._require(Collection.ASSIGNMENTS, assignment_id, "Assignment")
        submitted_at = submitted_at or datetime.now(timezone.utc)
        existing = self._store.query(Collection.SUBMISSIONS, [
            Predicate.eq("assignmentId", assignment_id),
            Predicate.eq("studentId", student_id),
        ])
        document = dict(existing[0]) if existing else {"assignmentId": assignment_id, "studentId": student_id}
        document.update({"content": content, "submittedAt": submitted_at.isoformat(), "status": "submitted"})
        return self._store.put(Collection.SUBMISSIONS, document)

    def grade(self, submission_id: str, grade: float, feedback: Optional[str] = None) -> Document:
        submission = self._require(Collection.SUBMISSIONS, submission_id, "Submission")
        assignment = self._store.get(Collection.ASSIGNMENTS, submission.get("assignmentId"))
        value = to_number(grade)
        if value is None or value < 0:
            raise ValidationError("Grade must be a non-negative number")
        total_points = to_number(assignment.get("totalPoints")) if assignment else None
        if total_points is not None and value > total_points:
            raise ValidationError(f"Grade {value} exceeds total points {total_points}")
        document = dict(submission)
        document.update({"grade": value, "feedback": feedback, "status": "graded"})
        return self._store.put(Collection.SUBMISSIONS, document)

    def mark_attendance(self, class_id: str, student_id: str, status: str,
                        day: Any = None) -> Document:
        """Mark one student's attendance; re-marking the same day overwrites it."""
        self._require(Collection.CLASSES, class_id, "Class")
        try:
            attendance_status = AttendanceStatus(str(status).strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid attendance status: {status}")
        session_day: Optional[date] = to_calendar_day(day) if day is not None else datetime.now(timezone.utc).date()
        if session_day is None:
            raise ValidationError(f"Unrecognised attendance date: {day}")
        return self._store.put(Collection.ATTENDANCE, {
            "id": f"{class_id}_{student_id}_{session_day.isoformat()}",
            "classId": class_id,
            "studentId": student_id,
            "date": session_day.isoformat(),
            "status": attendance_status.value,
        })

    def _require(self, collection: Collection, document_id: Optional[str], label: str) -> Dict[str, Any]:
        document = self._store.get(collection, document_id) if document_id else None
        if document is None:
            raise ValidationError(f"{label} not found: {document_id}", error_code="NOT_FOUND")
        return document
