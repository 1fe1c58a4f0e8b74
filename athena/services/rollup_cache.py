"""
Rollup cache and recompute trigger.

Each scope moves between two states. It is Stale until a resolve + reduce
cycle succeeds, and becomes Stale again on any change notification for a
collection it reads. While Stale, the previous Fresh snapshot stays visible
(stale-while-revalidate).

Recomputes for a scope never overlap: a request arriving while one is in
flight only marks the in-flight job to run once more when it finishes, so a
burst of updates costs at most one extra recompute. A recompute whose inputs
changed underneath it is abandoned and never published.
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

from ..core.entities import Scope
from ..core.enums import CacheState
from ..core.exceptions import ConfigurationError, RecomputeCancelled, ResolutionError
from ..core.interfaces import EntityStore
from ..core.rollups import PerformanceSnapshot, ResolutionFailed, StaleSnapshot
from ..engine.resolver import JoinResolver
from ..engine.snapshot import build_snapshot
from .concurrency_manager import ConcurrencyManager, EventStream
from .scope_watch import ScopeWatch

logger = logging.getLogger(__name__)

Outcome = Union[PerformanceSnapshot, ResolutionFailed]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScopeEntry:
    """Everything the cache owns for one scope; scopes share nothing."""
    scope: Scope
    state: CacheState = CacheState.STALE
    snapshot: Optional[PerformanceSnapshot] = None
    failure: Optional[ResolutionFailed] = None
    version: int = 0
    in_flight: Optional[Future] = None
    rerun_requested: bool = False
    recompute_count: int = 0
    updated: Optional[EventStream] = None
    failed: Optional[EventStream] = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    def __post_init__(self):
        if self.updated is None:
            self.updated = EventStream(f"{self.scope}:updated")
        if self.failed is None:
            self.failed = EventStream(f"{self.scope}:failed")

    @property
    def has_listeners(self) -> bool:
        return self.updated.get_subscriber_count() > 0 or self.failed.get_subscriber_count() > 0

    @property
    def is_recomputing(self) -> bool:
        in_flight = self.in_flight
        return in_flight is not None and not in_flight.done()


DEFAULT_MAX_WATCHED_SCOPES = 256


class RollupCache:
    """Owns the current PerformanceSnapshot of every scope.

    At most ``max_watched_scopes`` scopes are watched. Past that bound the
    least recently requested scopes that have no listeners and no recompute
    running are released: their store subscriptions are dropped along with
    their cached state, and the next request starts them afresh.
    """

    def __init__(self, store: EntityStore, concurrency_manager: ConcurrencyManager,
                 resolver: Optional[JoinResolver] = None, auto_refresh: bool = True,
                 clock: Callable[[], datetime] = utc_now,
                 max_watched_scopes: int = DEFAULT_MAX_WATCHED_SCOPES):
        if max_watched_scopes < 1:
            raise ConfigurationError("max_watched_scopes must be at least 1")
        self._store = store
        self._concurrency_manager = concurrency_manager
        self._resolver = resolver or JoinResolver(store)
        self._auto_refresh = auto_refresh
        self._clock = clock
        self._max_watched_scopes = max_watched_scopes
        self._entries: Dict[Scope, ScopeEntry] = {}
        self._watches: "OrderedDict[Scope, ScopeWatch]" = OrderedDict()
        self._subscriptions: Dict[str, EventStream] = {}
        self._released = 0
        self._lock = threading.RLock()

    def _entry(self, scope: Scope) -> ScopeEntry:
        with self._lock:
            entry = self._entries.get(scope)
            if entry is None:
                entry = ScopeEntry(scope=scope)
                self._entries[scope] = entry
            return entry

    def state(self, scope: Scope) -> CacheState:
        entry = self._entries.get(scope)
        if entry is None:
            return CacheState.STALE
        with entry.lock:
            return entry.state

    def get_snapshot(self, scope: Scope) -> Union[PerformanceSnapshot, StaleSnapshot]:
        """The Fresh snapshot, or a Stale marker carrying the last Fresh one."""
        entry = self._entries.get(scope)
        if entry is None:
            return StaleSnapshot(scope=scope)
        with entry.lock:
            if entry.state is CacheState.FRESH:
                return entry.snapshot
            return StaleSnapshot(scope=scope, previous=entry.snapshot, failure=entry.failure)

    def invalidate(self, scope: Scope) -> None:
        """Fresh -> Stale; supersedes any recompute already running."""
        entry = self._entry(scope)
        with entry.lock:
            entry.version += 1
            entry.state = CacheState.STALE
        logger.debug("Invalidated %s (version %d)", scope, entry.version)
        if self._auto_refresh:
            self.request_recompute(scope)

    def request_recompute(self, scope: Scope) -> Future:
        """Schedule a recompute, coalescing with one already in flight.

        The returned future resolves to the outcome of the last recompute
        the request was folded into: a PerformanceSnapshot or ResolutionFailed.
        """
        entry = self._entry(scope)
        with entry.lock:
            if entry.in_flight is not None and not entry.in_flight.done():
                entry.rerun_requested = True
                return entry.in_flight
            future = self._concurrency_manager.submit(self._recompute, entry)
            if not future.done():
                entry.in_flight = future
            return future

    def refresh(self, scope: Scope, timeout: Optional[float] = None) -> Outcome:
        """Recompute and wait for the outcome."""
        return self.request_recompute(scope).result(timeout=timeout)

    def watch(self, scope: Scope) -> bool:
        """Invalidate the scope whenever a collection it reads changes.

        Returns True when a new watch was started. Watching a scope that is
        already watched only marks it as the most recently requested.
        """
        with self._lock:
            if scope in self._watches:
                self._watches.move_to_end(scope)
                return False
            watch = ScopeWatch(self._store, scope, lambda: self.invalidate(scope))
            self._watches[scope] = watch
        try:
            watch.start()
        except Exception:
            with self._lock:
                self._watches.pop(scope, None)
            watch.stop()
            raise
        self._release_idle_scopes(keep=scope)
        return True

    def _release_idle_scopes(self, keep: Scope) -> None:
        released = []
        with self._lock:
            excess = len(self._watches) - self._max_watched_scopes
            for scope in list(self._watches):
                if excess <= 0:
                    break
                entry = self._entries.get(scope)
                if scope == keep or (entry is not None and (entry.has_listeners or entry.is_recomputing)):
                    continue
                released.append(self._watches.pop(scope))
                self._entries.pop(scope, None)
                excess -= 1
            self._released += len(released)
        for watch in released:
            watch.stop()
        if released:
            logger.debug("Released %d idle scope watches", len(released))

    def unwatch(self, scope: Scope) -> None:
        with self._lock:
            watch = self._watches.pop(scope, None)
        if watch is not None:
            watch.stop()

    def is_watched(self, scope: Scope) -> bool:
        with self._lock:
            return scope in self._watches

    def on_snapshot_updated(self, scope: Scope, callback: Callable[[PerformanceSnapshot], None]) -> str:
        """Call ``callback`` each time the scope becomes Fresh; returns a token."""
        return self._listen(self._entry(scope).updated, callback)

    def on_resolution_failed(self, scope: Scope, callback: Callable[[ResolutionFailed], None]) -> str:
        """Call ``callback`` each time resolving the scope fails; returns a token."""
        return self._listen(self._entry(scope).failed, callback)

    def unsubscribe(self, token: str) -> bool:
        with self._lock:
            stream = self._subscriptions.pop(token, None)
        return stream is not None and stream.unsubscribe(token)

    def _listen(self, stream: EventStream, callback: Callable) -> str:
        token = stream.subscribe(callback)
        with self._lock:
            self._subscriptions[token] = stream
        return token

    def get_statistics(self) -> Dict[str, int]:
        with self._lock:
            entries = list(self._entries.values())
            watched = len(self._watches)
            released = self._released
        fresh = 0
        in_flight = 0
        recomputes = 0
        for entry in entries:
            with entry.lock:
                fresh += entry.state is CacheState.FRESH
                in_flight += entry.in_flight is not None and not entry.in_flight.done()
                recomputes += entry.recompute_count
        return {
            "scopes": len(entries),
            "fresh": fresh,
            "stale": len(entries) - fresh,
            "in_flight": in_flight,
            "watched": watched,
            "recomputes": recomputes,
            "released": released,
        }

    def close(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for watch in watches:
            watch.stop()

    def _recompute(self, entry: ScopeEntry) -> Outcome:
        try:
            while True:
                with entry.lock:
                    version = entry.version
                    entry.rerun_requested = False
                    entry.recompute_count += 1

                try:
                    snapshot = self._compute(entry, version)
                except RecomputeCancelled:
                    logger.debug("Recompute of %s superseded at version %d", entry.scope, version)
                    continue
                except ResolutionError as e:
                    failure = ResolutionFailed(
                        scope=entry.scope,
                        message=e.message,
                        occurred_at=self._clock(),
                        error_code=e.error_code,
                    )
                    with entry.lock:
                        entry.failure = failure
                        done = entry.version == version and not entry.rerun_requested
                        if done:
                            entry.in_flight = None
                    logger.warning("Resolution failed for %s: %s", entry.scope, e.message)
                    entry.failed.publish(failure)
                    if done:
                        return failure
                    continue

                with entry.lock:
                    current = entry.version == version
                    if current:
                        entry.snapshot = snapshot
                        entry.state = CacheState.FRESH
                        entry.failure = None
                    done = current and not entry.rerun_requested
                    if done:
                        entry.in_flight = None

                if current:
                    logger.debug("Published snapshot for %s at version %d", entry.scope, version)
                    entry.updated.publish(snapshot)
                if done:
                    return snapshot
        except BaseException:
            with entry.lock:
                entry.in_flight = None
            logger.exception("Recompute of %s failed", entry.scope)
            raise

    def _compute(self, entry: ScopeEntry, version: int) -> PerformanceSnapshot:
        resolved = self._resolver.resolve(entry.scope)
        with entry.lock:
            if entry.version != version:
                raise RecomputeCancelled(f"{entry.scope} changed during resolve")
        return build_snapshot(entry.scope, resolved, self._clock())
