"""
Metric reducers.

Pure, deterministic functions over already-resolved records. Every rate is a
percentage in [0, 100] and every zero denominator yields exactly 0.0.
"""

from dataclasses import dataclass
from statistics import mean
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.entities import Assignment, AttendanceRecord, ClassRecord, Submission, UNKNOWN_SUBJECT
from ..core.rollups import SubjectAggregate


def percentage(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator * 100.0


def average(values: Sequence[float]) -> float:
    return float(mean(values)) if values else 0.0


@dataclass(frozen=True)
class AttendanceTally:
    total: int
    present: int
    absent: int
    rate: float


def attendance_tally(rows: Iterable[AttendanceRecord]) -> AttendanceTally:
    total = 0
    present = 0
    for row in rows:
        total += 1
        if row.is_present:
            present += 1
    return AttendanceTally(total=total, present=present, absent=total - present,
                           rate=percentage(present, total))


def attendance_rate(rows: Iterable[AttendanceRecord]) -> float:
    """present / total * 100, 0 when there are no rows."""
    return attendance_tally(rows).rate


def completion_rate(assignments: Sequence[Assignment], submissions: Iterable[Submission]) -> float:
    """Share of assignments with at least one submission."""
    if not assignments:
        return 0.0
    submitted = {submission.assignment_id for submission in submissions}
    completed = sum(1 for assignment in assignments if assignment.assignment_id in submitted)
    return percentage(completed, len(assignments))


def grade_percentage(submission: Submission, assignment: Optional[Assignment]) -> Optional[float]:
    """Grade as a percentage of the assignment's points.

    None when the submission is ungraded or the assignment has no usable
    point total. Scores above the total (bonus marks) are capped at 100.
    """
    if submission.grade is None or assignment is None or not assignment.is_gradable:
        return None
    score = submission.grade / assignment.total_points * 100.0
    return min(max(score, 0.0), 100.0)


def graded_percentages(submissions: Iterable[Submission],
                       assignments_by_id: Mapping[str, Assignment]) -> List[float]:
    scores = []
    for submission in submissions:
        score = grade_percentage(submission, assignments_by_id.get(submission.assignment_id))
        if score is not None:
            scores.append(score)
    return scores


def average_grade(submissions: Iterable[Submission], assignments_by_id: Mapping[str, Assignment]) -> float:
    """Mean grade percentage over graded submissions only.

    Ungraded submissions are excluded from numerator and denominator alike,
    so "not graded yet" never reads as a zero.
    """
    return average(graded_percentages(submissions, assignments_by_id))


def participation_rate(attendance: Sequence[AttendanceRecord], assignments: Sequence[Assignment],
                       submissions: Iterable[Submission]) -> float:
    """Sessions attended plus assignments handed in, over sessions plus assignments."""
    submitted = {submission.assignment_id for submission in submissions}
    engaged = sum(1 for row in attendance if row.is_present)
    engaged += sum(1 for assignment in assignments if assignment.assignment_id in submitted)
    return percentage(engaged, len(attendance) + len(assignments))


def subject_averages(classes: Iterable[ClassRecord], assignments: Iterable[Assignment],
                     submissions: Iterable[Submission]) -> Tuple[SubjectAggregate, ...]:
    """Average grade per subject of the submission's class, sorted by subject."""
    subject_by_class: Dict[str, str] = {record.class_id: record.subject for record in classes}
    assignments_by_id = {assignment.assignment_id: assignment for assignment in assignments}

    scores_by_subject: Dict[str, List[float]] = {}
    for submission in submissions:
        assignment = assignments_by_id.get(submission.assignment_id)
        score = grade_percentage(submission, assignment)
        if score is None:
            continue
        subject = subject_by_class.get(assignment.class_id, UNKNOWN_SUBJECT)
        scores_by_subject.setdefault(subject, []).append(score)

    return tuple(
        SubjectAggregate(subject=subject, average_grade=average(scores), graded_count=len(scores))
        for subject, scores in sorted(scores_by_subject.items())
    )
