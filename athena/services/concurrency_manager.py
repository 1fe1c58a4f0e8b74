"""
Concurrency management: background execution and thread-safe publish/subscribe.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from ..core.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


class ConcurrencyManager:
    """Runs recompute jobs off the caller's thread.

    With ``max_workers=0`` jobs run inline on the calling thread and the
    returned future is already resolved, which keeps tests deterministic.
    """

    def __init__(self, max_workers: int = 4):
        if max_workers < 0:
            raise ConcurrencyError("max_workers cannot be negative")
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers > 0:
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="athena-recompute")
        self._lock = threading.RLock()
        self._shutdown = False

    @property
    def is_inline(self) -> bool:
        return self._executor is None

    def submit(self, func: Callable[..., Any], *args: Any) -> Future:
        """Schedule ``func(*args)`` and return its future."""
        with self._lock:
            if self._shutdown:
                raise ConcurrencyError("Concurrency manager has been shut down")
            if self._executor is not None:
                return self._executor.submit(func, *args)

        future: Future = Future()
        try:
            future.set_result(func(*args))
        except Exception as e:
            future.set_exception(e)
        return future

    def cleanup(self):
        """Clean up resources."""
        with self._lock:
            self._shutdown = True
            executor = self._executor
        if executor is not None:
            executor.shutdown(wait=True)


class EventStream:
    """Thread-safe event stream for the publish/subscribe pattern."""

    def __init__(self, name: str):
        self._name = name
        self._subscribers: Dict[str, Callable[[Any], None]] = {}
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._name

    def subscribe(self, callback: Callable[[Any], None], subscriber_id: Optional[str] = None) -> str:
        """Subscribe to events; returns the subscriber id."""
        subscriber_id = subscriber_id or str(uuid.uuid4())
        with self._lock:
            self._subscribers[subscriber_id] = callback
        return subscriber_id

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Unsubscribe from events."""
        with self._lock:
            return self._subscribers.pop(subscriber_id, None) is not None

    def publish(self, event: Any) -> None:
        """Publish an event to all subscribers."""
        with self._lock:
            subscribers = list(self._subscribers.items())

        # Notify outside the lock so callbacks may subscribe or unsubscribe.
        for subscriber_id, callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Error notifying subscriber %s on %s", subscriber_id, self._name)

    def get_subscriber_count(self) -> int:
        """Get number of subscribers."""
        with self._lock:
            return len(self._subscribers)
