"""
Builds an immutable PerformanceSnapshot from a resolved record set.
"""

from datetime import datetime
from typing import Dict, List, Mapping, Sequence, Tuple

from ..core.entities import Assignment, AttendanceRecord, ClassRecord, Scope, Submission, UNKNOWN_SUBJECT
from ..core.enums import ScopeKind
from ..core.rollups import ClassRollup, PerformanceSnapshot, StudentRollup
from .distribution import classify, distribution, rank_students
from .reducers import (
    attendance_rate, attendance_tally, average, average_grade, completion_rate, graded_percentages,
    participation_rate, subject_averages,
)
from .resolver import ResolvedSet, index_by, restrict_to_window, unique_index
from .timeline import build_timeline


def build_snapshot(scope: Scope, resolved: ResolvedSet, as_of: datetime) -> PerformanceSnapshot:
    """Reduce a resolved set into a snapshot.

    Pure: the same scope, records and ``as_of`` always produce an equal
    snapshot. Scope-level attendance and participation are the mean of the
    per-student rates across the roster, so a student with no attendance
    rows pulls the figure down instead of being ignored. Scope-level grade
    and completion pool every graded submission and assignment.
    """
    working = restrict_to_window(resolved, scope.window, as_of)
    assignments_by_id = working.assignments_by_id()
    assignments_by_class = index_by(working.assignments, lambda assignment: assignment.class_id)
    classes_by_student = index_by(working.enrollments, lambda enrollment: enrollment.student_id)
    submissions_by_student = index_by(working.submissions, lambda submission: submission.student_id)
    attendance_by_student = index_by(working.attendance, lambda row: row.student_id)

    student_rollups = tuple(
        _student_rollup(
            student_id,
            [enrollment.class_id for enrollment in classes_by_student.get(student_id, [])],
            assignments_by_class,
            assignments_by_id,
            submissions_by_student.get(student_id, []),
            attendance_by_student.get(student_id, []),
        )
        for student_id in working.student_ids
    )

    return PerformanceSnapshot(
        scope=scope,
        as_of=as_of,
        class_rollups=_class_rollups(scope, working, assignments_by_class, assignments_by_id),
        student_rollups=student_rollups,
        subject_aggregates=subject_averages(working.classes, working.assignments, working.submissions),
        distribution=distribution(student_rollups),
        timeline=build_timeline(working),
        attendance_rate=average([rollup.attendance_rate for rollup in student_rollups]),
        completion_rate=completion_rate(working.assignments, working.submissions),
        average_grade=average_grade(working.submissions, assignments_by_id),
        participation_rate=average([rollup.participation_rate for rollup in student_rollups]),
        ranking=tuple(rollup.student_id for rollup in rank_students(student_rollups)),
    )


def _student_rollup(student_id: str, class_ids: Sequence[str],
                    assignments_by_class: Mapping[str, List[Assignment]],
                    assignments_by_id: Mapping[str, Assignment],
                    submissions: Sequence[Submission],
                    attendance: Sequence[AttendanceRecord]) -> StudentRollup:
    enrolled = set(class_ids)
    assignments = [assignment for class_id in dict.fromkeys(class_ids)
                   for assignment in assignments_by_class.get(class_id, [])]
    own_submissions = [
        submission for submission in submissions
        if submission.assignment_id in assignments_by_id
        and assignments_by_id[submission.assignment_id].class_id in enrolled
    ]
    rows = [row for row in attendance if row.class_id in enrolled]

    grade = average_grade(own_submissions, assignments_by_id)
    return StudentRollup(
        student_id=student_id,
        average_grade=grade,
        attendance_rate=attendance_rate(rows),
        participation_rate=participation_rate(rows, assignments, own_submissions),
        completion_rate=completion_rate(assignments, own_submissions),
        graded_count=len(graded_percentages(own_submissions, assignments_by_id)),
        band=classify(grade),
    )


def _class_rollups(scope: Scope, working: ResolvedSet,
                   assignments_by_class: Mapping[str, List[Assignment]],
                   assignments_by_id: Mapping[str, Assignment]) -> Tuple[ClassRollup, ...]:
    if scope.kind is ScopeKind.CLASS:
        class_ids = [scope.identifier]
    else:
        class_ids = list(working.class_ids)

    classes_by_id: Dict[str, ClassRecord] = unique_index(working.classes, lambda record: record.class_id)
    rosters = index_by(working.enrollments, lambda enrollment: enrollment.class_id)
    submissions_by_class = index_by(
        working.submissions,
        lambda submission: assignments_by_id[submission.assignment_id].class_id
        if submission.assignment_id in assignments_by_id else None,
    )
    attendance_by_seat = index_by(working.attendance, lambda row: (row.class_id, row.student_id))

    rollups = []
    for class_id in class_ids:
        record = classes_by_id.get(class_id)
        roster = sorted({enrollment.student_id for enrollment in rosters.get(class_id, [])})
        assignments = assignments_by_class.get(class_id, [])
        submissions = submissions_by_class.get(class_id, [])
        seats = [attendance_by_seat.get((class_id, student_id), []) for student_id in roster]
        tally = attendance_tally(row for rows in seats for row in rows)
        rollups.append(ClassRollup(
            class_id=class_id,
            class_name=record.name if record else None,
            subject=record.subject if record else UNKNOWN_SUBJECT,
            student_count=len(roster),
            assignment_count=len(assignments),
            attendance_rate=average([attendance_rate(rows) for rows in seats]),
            completion_rate=completion_rate(assignments, submissions),
            average_grade=average_grade(submissions, assignments_by_id),
            attendance_total=tally.total,
            present_count=tally.present,
            absent_count=tally.absent,
        ))
    return tuple(rollups)
