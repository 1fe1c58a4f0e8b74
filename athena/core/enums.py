"""
Enumerations and constants for the Athena engine.
"""

from enum import Enum


class Collection(Enum):
    """Collections exposed by the entity store."""
    USERS = "users"
    CLASSES = "classes"
    ENROLLMENTS = "enrollments"
    ASSIGNMENTS = "assignments"
    SUBMISSIONS = "submissions"
    ATTENDANCE = "attendance"
    ANNOUNCEMENTS = "announcements"


class AttendanceStatus(Enum):
    """Attendance status of a student for one class session."""
    PRESENT = "present"
    ABSENT = "absent"


class ScopeKind(Enum):
    """What a performance scope is keyed on."""
    CLASS = "class"
    STUDENT = "student"
    TEACHER = "teacher"


class TimeWindow(Enum):
    """Look-back windows offered by the analytics views."""
    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def days(self) -> int:
        """Number of days covered, 0 meaning unbounded."""
        return _WINDOW_DAYS[self]


_WINDOW_DAYS = {
    TimeWindow.ALL: 0,
    TimeWindow.WEEK: 7,
    TimeWindow.MONTH: 30,
    TimeWindow.QUARTER: 90,
    TimeWindow.YEAR: 365,
}


class PerformanceBand(Enum):
    """Performance bands, ordered from best to worst."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    NEEDS_IMPROVEMENT = "Needs Improvement"

    @property
    def lower_bound(self) -> float:
        """Inclusive lower bound of the band's average grade."""
        return BAND_LOWER_BOUNDS[self]


# Evaluated high-to-low; the first bound an average reaches wins.
BAND_LOWER_BOUNDS = {
    PerformanceBand.EXCELLENT: 90.0,
    PerformanceBand.GOOD: 80.0,
    PerformanceBand.AVERAGE: 70.0,
    PerformanceBand.NEEDS_IMPROVEMENT: float("-inf"),
}


class CacheState(Enum):
    """State of a scope inside the rollup cache."""
    STALE = "stale"
    FRESH = "fresh"


class ReportFormat(Enum):
    """Supported export formats."""
    JSON = "json"
    CSV = "csv"
