"""
Timeline builder: merges grade and attendance events by calendar day.
"""

from datetime import date
from typing import Dict, List, Tuple

from ..core.rollups import TimelinePoint
from .reducers import average, grade_percentage, percentage
from .resolver import ResolvedSet, grade_event_day


def build_timeline(resolved: ResolvedSet) -> Tuple[TimelinePoint, ...]:
    """One point per day with any grade or attendance event, ascending by day.

    The series carries no state of its own and is re-derived from the
    resolved set every time. A day without grades (or without attendance)
    reports None for that side rather than a fabricated value.
    """
    assignments_by_id = resolved.assignments_by_id()

    grades_by_day: Dict[date, List[float]] = {}
    for submission in resolved.submissions:
        assignment = assignments_by_id.get(submission.assignment_id)
        score = grade_percentage(submission, assignment)
        day = grade_event_day(submission, assignment)
        if score is None or day is None:
            continue
        grades_by_day.setdefault(day, []).append(score)

    attendance_by_day: Dict[date, List[bool]] = {}
    for row in resolved.attendance:
        if row.day is not None:
            attendance_by_day.setdefault(row.day, []).append(row.is_present)

    points = []
    for day in sorted(set(grades_by_day) | set(attendance_by_day)):
        scores = grades_by_day.get(day)
        marks = attendance_by_day.get(day)
        points.append(TimelinePoint(
            date=day,
            grade=average(scores) if scores else None,
            attendance=percentage(sum(marks), len(marks)) if marks else None,
        ))
    return tuple(points)
