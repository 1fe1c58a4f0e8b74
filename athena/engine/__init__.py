"""
Aggregation engine: join resolution, reducers, bucketing and timelines.
"""

from .resolver import JoinResolver, ResolvedSet, index_by, unique_index, restrict_to_window
from .reducers import (
    AttendanceTally, attendance_tally, attendance_rate, completion_rate,
    grade_percentage, average_grade, participation_rate, subject_averages,
)
from .distribution import classify, distribution, rank_students
from .timeline import build_timeline
from .snapshot import build_snapshot

__all__ = [
    "JoinResolver",
    "ResolvedSet",
    "index_by",
    "unique_index",
    "restrict_to_window",
    "AttendanceTally",
    "attendance_tally",
    "attendance_rate",
    "completion_rate",
    "grade_percentage",
    "average_grade",
    "participation_rate",
    "subject_averages",
    "classify",
    "distribution",
    "rank_students",
    "build_timeline",
    "build_snapshot",
]
