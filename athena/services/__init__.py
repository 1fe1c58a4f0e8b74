"""
Services module: recompute scheduling, caching and record writes.
"""

from .concurrency_manager import ConcurrencyManager, EventStream
from .scope_watch import ScopeWatch
from .rollup_cache import RollupCache, ScopeEntry
from .performance_service import PerformanceService
from .record_service import RecordService

__all__ = [
    "ConcurrencyManager",
    "EventStream",
    "ScopeWatch",
    "RollupCache",
    "ScopeEntry",
    "PerformanceService",
    "RecordService",
]
