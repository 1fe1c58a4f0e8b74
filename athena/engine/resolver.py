"""
Join resolver: assembles the records relevant to a scope.

The store has no join operator, so joins happen here. Every join builds an
index (join key -> rows) once per resolve call and then probes it, keeping
the cost linear in the number of rows fetched.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..core.entities import Assignment, AttendanceRecord, ClassRecord, Enrollment, Scope, Submission
from ..core.enums import Collection, ScopeKind, TimeWindow
from ..core.exceptions import ResolutionError, StoreError, ValidationError
from ..core.interfaces import Document, EntityStore, Predicate

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

# Document stores commonly cap the size of an ``in`` filter.
DEFAULT_MAX_IN_VALUES = 30


def index_by(rows: Iterable[T], key: Callable[[T], K]) -> Dict[K, List[T]]:
    """Group rows by a join key, preserving row order within each group."""
    index: Dict[K, List[T]] = defaultdict(list)
    for row in rows:
        index[key(row)].append(row)
    return dict(index)


def unique_index(rows: Iterable[T], key: Callable[[T], K]) -> Dict[K, T]:
    """Map each key to its last row."""
    return {key(row): row for row in rows}


def dedupe_attendance(rows: Iterable[AttendanceRecord]) -> Tuple[AttendanceRecord, ...]:
    """Keep one record per (class, student, day).

    The last record delivered by the store wins. Undated records cannot be
    matched to a session and are all kept.
    """
    latest: Dict[Tuple, AttendanceRecord] = {}
    undated: List[AttendanceRecord] = []
    for record in rows:
        if record.day is None:
            undated.append(record)
        else:
            latest[record.key] = record
    return tuple(latest.values()) + tuple(undated)


def grade_event_day(submission: Submission, assignment: Optional[Assignment]) -> Optional[date]:
    """Day a grade event is charted on: submission day, else the due date."""
    if submission.submitted_on is not None:
        return submission.submitted_on
    return assignment.due_date if assignment is not None else None


@dataclass(frozen=True)
class ResolvedSet:
    """Materialized, joined records of one scope."""
    enrollments: Tuple[Enrollment, ...] = ()
    classes: Tuple[ClassRecord, ...] = ()
    assignments: Tuple[Assignment, ...] = ()
    submissions: Tuple[Submission, ...] = ()
    attendance: Tuple[AttendanceRecord, ...] = ()

    @classmethod
    def empty(cls) -> "ResolvedSet":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.enrollments

    @property
    def student_ids(self) -> Tuple[str, ...]:
        return tuple(sorted({enrollment.student_id for enrollment in self.enrollments}))

    @property
    def class_ids(self) -> Tuple[str, ...]:
        ids = {enrollment.class_id for enrollment in self.enrollments}
        ids.update(record.class_id for record in self.classes)
        return tuple(sorted(ids))

    def assignments_by_id(self) -> Dict[str, Assignment]:
        return unique_index(self.assignments, lambda assignment: assignment.assignment_id)


def restrict_to_window(resolved: ResolvedSet, window: TimeWindow, as_of: datetime) -> ResolvedSet:
    """Drop dated activity older than the window; undated rows are kept."""
    if window is TimeWindow.ALL or resolved.is_empty:
        return resolved
    cutoff = as_of.date() - timedelta(days=window.days)

    def recent(day: Optional[date]) -> bool:
        return day is None or day >= cutoff

    assignments = tuple(a for a in resolved.assignments if recent(a.due_date))
    kept = unique_index(assignments, lambda assignment: assignment.assignment_id)
    submissions = tuple(
        s for s in resolved.submissions
        if s.assignment_id in kept and recent(grade_event_day(s, kept[s.assignment_id]))
    )
    attendance = tuple(r for r in resolved.attendance if recent(r.day))
    return ResolvedSet(
        enrollments=resolved.enrollments,
        classes=resolved.classes,
        assignments=assignments,
        submissions=submissions,
        attendance=attendance,
    )


class JoinResolver:
    """Resolves the transitive record set needed to aggregate a scope."""

    def __init__(self, store: EntityStore, max_in_values: int = DEFAULT_MAX_IN_VALUES):
        if max_in_values < 1:
            raise ValidationError("max_in_values must be at least 1")
        self._store = store
        self._max_in_values = max_in_values

    def resolve(self, scope: Scope) -> ResolvedSet:
        """Resolve a scope; store failures surface as :class:`ResolutionError`."""
        try:
            if scope.kind is ScopeKind.CLASS:
                resolved = self._resolve_classes([scope.identifier])
            elif scope.kind is ScopeKind.STUDENT:
                resolved = self._resolve_student(scope.identifier)
            elif scope.kind is ScopeKind.TEACHER:
                resolved = self._resolve_teacher(scope.identifier)
            else:
                raise ValidationError(f"Unsupported scope kind: {scope.kind}")
        except StoreError as e:
            raise ResolutionError(
                f"Failed to resolve {scope}: {e.message}",
                error_code=e.error_code or "RESOLUTION_FAILED",
                details={"scope": str(scope)},
            ) from e

        logger.debug(
            "Resolved %s: %d enrollments, %d assignments, %d submissions, %d attendance rows",
            scope, len(resolved.enrollments), len(resolved.assignments),
            len(resolved.submissions), len(resolved.attendance),
        )
        return resolved

    def _resolve_teacher(self, teacher_id: str) -> ResolvedSet:
        class_docs = self._store.query(Collection.CLASSES, [Predicate.eq("teacherId", teacher_id)])
        classes = [ClassRecord.from_document(doc) for doc in class_docs]
        class_ids = [record.class_id for record in classes if record.class_id]
        return self._resolve_classes(class_ids, classes)

    def _resolve_classes(self, class_ids: Sequence[str],
                         classes: Optional[List[ClassRecord]] = None) -> ResolvedSet:
        if not class_ids:
            return ResolvedSet.empty()

        enrollments = self._parse_enrollments(self._query_in(Collection.ENROLLMENTS, "classId", class_ids))
        if not enrollments:
            return ResolvedSet.empty()

        if classes is None:
            classes = [ClassRecord.from_document(doc)
                       for doc in self._query_in(Collection.CLASSES, "id", class_ids)]

        assignments = self._parse_assignments(self._query_in(Collection.ASSIGNMENTS, "classId", class_ids))
        assignment_index = unique_index(assignments, lambda assignment: assignment.assignment_id)

        submissions: List[Submission] = []
        if assignment_index:
            submission_docs = self._query_in(Collection.SUBMISSIONS, "assignmentId", list(assignment_index))
            submissions = [
                submission for submission in map(Submission.from_document, submission_docs)
                if submission.student_id and submission.assignment_id in assignment_index
            ]

        attendance = self._parse_attendance(self._query_in(Collection.ATTENDANCE, "classId", class_ids))

        return ResolvedSet(
            enrollments=tuple(enrollments),
            classes=tuple(classes),
            assignments=tuple(assignments),
            submissions=tuple(submissions),
            attendance=dedupe_attendance(attendance),
        )

    def _resolve_student(self, student_id: str) -> ResolvedSet:
        enrollments = self._parse_enrollments(
            self._store.query(Collection.ENROLLMENTS, [Predicate.eq("studentId", student_id)])
        )
        if not enrollments:
            return ResolvedSet.empty()

        class_ids = list(dict.fromkeys(enrollment.class_id for enrollment in enrollments))
        enrolled = set(class_ids)

        classes = [ClassRecord.from_document(doc) for doc in self._query_in(Collection.CLASSES, "id", class_ids)]
        assignments = self._parse_assignments(self._query_in(Collection.ASSIGNMENTS, "classId", class_ids))
        assignment_index = unique_index(assignments, lambda assignment: assignment.assignment_id)

        submission_docs = self._store.query(Collection.SUBMISSIONS, [Predicate.eq("studentId", student_id)])
        submissions = [
            submission for submission in map(Submission.from_document, submission_docs)
            if submission.assignment_id in assignment_index
        ]

        attendance_docs = self._store.query(Collection.ATTENDANCE, [Predicate.eq("studentId", student_id)])
        attendance = [record for record in self._parse_attendance(attendance_docs) if record.class_id in enrolled]

        return ResolvedSet(
            enrollments=tuple(enrollments),
            classes=tuple(classes),
            assignments=tuple(assignments),
            submissions=tuple(submissions),
            attendance=dedupe_attendance(attendance),
        )

    def _query_in(self, collection: Collection, field: str, values: Sequence[str]) -> List[Document]:
        """Run an ``in`` query, chunked to the store's filter size limit."""
        rows: List[Document] = []
        distinct = list(dict.fromkeys(values))
        for start in range(0, len(distinct), self._max_in_values):
            chunk = distinct[start:start + self._max_in_values]
            rows.extend(self._store.query(collection, [Predicate.is_in(field, chunk)]))
        return rows

    @staticmethod
    def _parse_enrollments(docs: Iterable[Document]) -> List[Enrollment]:
        seen = set()
        enrollments = []
        for enrollment in map(Enrollment.from_document, docs):
            pair = (enrollment.student_id, enrollment.class_id)
            if not enrollment.student_id or not enrollment.class_id or pair in seen:
                continue
            seen.add(pair)
            enrollments.append(enrollment)
        return enrollments

    @staticmethod
    def _parse_assignments(docs: Iterable[Document]) -> List[Assignment]:
        return [assignment for assignment in map(Assignment.from_document, docs) if assignment.assignment_id]

    @staticmethod
    def _parse_attendance(docs: Iterable[Document]) -> List[AttendanceRecord]:
        return [record for record in map(AttendanceRecord.from_document, docs)
                if record.student_id and record.class_id]
