"""
Core module containing value objects, enums, exceptions and the store interface.
"""

from .entities import *
from .interfaces import *
from .exceptions import *
from .enums import *
from .rollups import *
from .serialization import round_rate, export_snapshot

__all__ = [
    # Entities
    "Enrollment",
    "ClassRecord",
    "Assignment",
    "Submission",
    "AttendanceRecord",
    "Scope",
    "UNKNOWN_SUBJECT",
    "to_calendar_day",
    "to_number",

    # Rollups
    "ClassRollup",
    "StudentRollup",
    "SubjectAggregate",
    "TimelinePoint",
    "PerformanceSnapshot",
    "ResolutionFailed",
    "StaleSnapshot",

    # Interfaces
    "EntityStore",
    "Predicate",
    "Document",
    "ChangeCallback",
    "matches_all",

    # Enums
    "Collection",
    "AttendanceStatus",
    "ScopeKind",
    "TimeWindow",
    "PerformanceBand",
    "CacheState",
    "ReportFormat",

    # Exceptions
    "AthenaException",
    "ValidationError",
    "ConfigurationError",
    "StoreError",
    "ResolutionError",
    "ConcurrencyError",
    "RecomputeCancelled",

    # Serialization
    "round_rate",
    "export_snapshot",
]
