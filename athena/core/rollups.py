"""
Derived, transient value objects produced by the aggregation engine.

Nothing here is persisted. A :class:`PerformanceSnapshot` is immutable and is
superseded wholesale on every recompute, so readers never see a partially
updated result.
"""

from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Dict, Optional, Tuple

from .entities import Scope
from .enums import PerformanceBand
from .serialization import round_rate


@dataclass(frozen=True)
class ClassRollup:
    class_id: str
    class_name: Optional[str]
    subject: str
    student_count: int
    assignment_count: int
    attendance_rate: float
    completion_rate: float
    average_grade: float
    attendance_total: int = 0
    present_count: int = 0
    absent_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_id": self.class_id,
            "class_name": self.class_name,
            "subject": self.subject,
            "student_count": self.student_count,
            "assignment_count": self.assignment_count,
            "attendance_rate": round_rate(self.attendance_rate),
            "completion_rate": round_rate(self.completion_rate),
            "average_grade": round_rate(self.average_grade),
            "attendance_total": self.attendance_total,
            "present_count": self.present_count,
            "absent_count": self.absent_count,
        }


@dataclass(frozen=True)
class StudentRollup:
    student_id: str
    average_grade: float
    attendance_rate: float
    participation_rate: float
    completion_rate: float
    graded_count: int
    band: PerformanceBand

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "average_grade": round_rate(self.average_grade),
            "attendance_rate": round_rate(self.attendance_rate),
            "participation_rate": round_rate(self.participation_rate),
            "completion_rate": round_rate(self.completion_rate),
            "graded_count": self.graded_count,
            "band": self.band.value,
        }


@dataclass(frozen=True)
class SubjectAggregate:
    subject: str
    average_grade: float
    graded_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "average_grade": round_rate(self.average_grade),
            "graded_count": self.graded_count,
        }


@dataclass(frozen=True)
class TimelinePoint:
    """One calendar day of activity; a side with no events that day is None."""
    date: date
    grade: Optional[float]
    attendance: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "grade": round_rate(self.grade) if self.grade is not None else None,
            "attendance": round_rate(self.attendance) if self.attendance is not None else None,
        }


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Timestamped bundle of every rollup computed for a scope."""
    scope: Scope
    as_of: datetime
    class_rollups: Tuple[ClassRollup, ...]
    student_rollups: Tuple[StudentRollup, ...]
    subject_aggregates: Tuple[SubjectAggregate, ...]
    distribution: Tuple[Tuple[PerformanceBand, int], ...]
    timeline: Tuple[TimelinePoint, ...]
    attendance_rate: float
    completion_rate: float
    average_grade: float
    participation_rate: float
    ranking: Tuple[str, ...] = ()

    @property
    def distribution_counts(self) -> Dict[PerformanceBand, int]:
        return dict(self.distribution)

    def students_in_band(self, band: PerformanceBand) -> Tuple[StudentRollup, ...]:
        return tuple(rollup for rollup in self.student_rollups if rollup.band is band)

    def ranked_students(self) -> Tuple[StudentRollup, ...]:
        """Student rollups, highest average grade first."""
        by_id = {rollup.student_id: rollup for rollup in self.student_rollups}
        return tuple(by_id[student_id] for student_id in self.ranking)

    def student(self, student_id: str) -> Optional[StudentRollup]:
        for rollup in self.student_rollups:
            if rollup.student_id == student_id:
                return rollup
        return None

    def subject(self, name: str) -> Optional[SubjectAggregate]:
        for aggregate in self.subject_aggregates:
            if aggregate.subject == name:
                return aggregate
        return None

    def overview(self) -> Dict[str, Any]:
        """Headline figures for the dashboard cards (unrounded)."""
        counts = self.distribution_counts
        return {
            "total_students": len(self.student_rollups),
            "average_grade": self.average_grade,
            "attendance_rate": self.attendance_rate,
            "participation_rate": self.participation_rate,
            "completion_rate": self.completion_rate,
            "top_performers": counts.get(PerformanceBand.EXCELLENT, 0),
            "needs_improvement": counts.get(PerformanceBand.NEEDS_IMPROVEMENT, 0),
        }

    def skills(self) -> Dict[str, float]:
        """The four axes of the skills radar chart (unrounded)."""
        return {
            "Grades": self.average_grade,
            "Attendance": self.attendance_rate,
            "Participation": self.participation_rate,
            "Assignments": self.completion_rate,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Display/export form: every rate rounded to one decimal place."""
        overview = self.overview()
        for key in ("average_grade", "attendance_rate", "participation_rate", "completion_rate"):
            overview[key] = round_rate(overview[key])
        return {
            "scope": {
                "kind": self.scope.kind.value,
                "identifier": self.scope.identifier,
                "window": self.scope.window.value,
            },
            "as_of": self.as_of.isoformat(),
            "overview": overview,
            "skills": {name: round_rate(value) for name, value in self.skills().items()},
            "class_rollups": [rollup.to_dict() for rollup in self.class_rollups],
            "student_rollups": [rollup.to_dict() for rollup in self.student_rollups],
            "subject_aggregates": [aggregate.to_dict() for aggregate in self.subject_aggregates],
            "distribution": {band.value: count for band, count in self.distribution},
            "ranking": list(self.ranking),
            "timeline": [point.to_dict() for point in self.timeline],
        }


@dataclass(frozen=True)
class ResolutionFailed:
    """Outcome reported when the records of a scope could not be resolved."""
    scope: Scope
    message: str
    occurred_at: datetime
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "error_code": self.error_code,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class StaleSnapshot:
    """Marker returned while a scope is Stale.

    ``previous`` is the last Fresh snapshot (stale-while-revalidate) and
    ``failure`` the most recent resolution failure, if any.
    """
    scope: Scope
    previous: Optional[PerformanceSnapshot] = None
    failure: Optional[ResolutionFailed] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "stale",
            "previous": self.previous.to_dict() if self.previous else None,
            "failure": self.failure.to_dict() if self.failure else None,
        }
