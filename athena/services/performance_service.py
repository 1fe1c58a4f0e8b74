"""
Performance service: the output boundary used by presentation collaborators.
"""

import logging
from typing import Callable, Dict, Optional, Union

from ..core.entities import Scope
from ..core.enums import ReportFormat
from ..core.rollups import PerformanceSnapshot, ResolutionFailed, StaleSnapshot
from ..core.serialization import export_snapshot
from .rollup_cache import Outcome, RollupCache

logger = logging.getLogger(__name__)


class PerformanceService:
    """Hands out snapshots, starting to watch a scope the first time it is asked for."""

    def __init__(self, cache: RollupCache):
        self._cache = cache

    def get_snapshot(self, scope: Scope) -> Union[PerformanceSnapshot, StaleSnapshot]:
        """Current snapshot or Stale marker; the first request kicks off a recompute."""
        if self._cache.watch(scope):
            self._cache.request_recompute(scope)
        return self._cache.get_snapshot(scope)

    def refresh(self, scope: Scope, timeout: Optional[float] = None) -> Outcome:
        self._cache.watch(scope)
        return self._cache.refresh(scope, timeout=timeout)

    def on_snapshot_updated(self, scope: Scope, callback: Callable[[PerformanceSnapshot], None]) -> str:
        return self._cache.on_snapshot_updated(scope, callback)

    def on_resolution_failed(self, scope: Scope, callback: Callable[[ResolutionFailed], None]) -> str:
        return self._cache.on_resolution_failed(scope, callback)

    def unsubscribe(self, token: str) -> bool:
        return self._cache.unsubscribe(token)

    def export(self, scope: Scope, report_format: ReportFormat = ReportFormat.JSON) -> Optional[str]:
        """Export the freshest snapshot available, or None when there is none yet."""
        result = self.get_snapshot(scope)
        snapshot = result.previous if isinstance(result, StaleSnapshot) else result
        if snapshot is None:
            return None
        return export_snapshot(snapshot, report_format)

    def get_statistics(self) -> Dict[str, int]:
        return self._cache.get_statistics()
