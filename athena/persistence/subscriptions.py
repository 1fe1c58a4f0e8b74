"""
Change subscriptions shared by the entity store implementations.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..core.enums import Collection
from ..core.interfaces import ChangeCallback, Document, Predicate, matches_all

logger = logging.getLogger(__name__)


@dataclass
class StoreSubscription:
    """A live query registered against one collection."""
    token: str
    collection: Collection
    predicates: Tuple[Predicate, ...]
    on_change: ChangeCallback
    created_at: float = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = time.time()

    def is_affected_by(self, *documents: Optional[Document]) -> bool:
        return any(doc is not None and matches_all(doc, self.predicates) for doc in documents)


class SubscriptionRegistry:
    """Thread-safe registry of store subscriptions."""

    def __init__(self):
        self._subscriptions: Dict[str, StoreSubscription] = {}
        self._lock = threading.RLock()

    def add(self, collection: Collection, predicates: Sequence[Predicate], on_change: ChangeCallback) -> str:
        token = str(uuid.uuid4())
        with self._lock:
            self._subscriptions[token] = StoreSubscription(
                token=token,
                collection=collection,
                predicates=tuple(predicates),
                on_change=on_change,
            )
        return token

    def remove(self, token: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(token, None) is not None

    def affected(self, collection: Collection, before: Optional[Document],
                 after: Optional[Document]) -> List[StoreSubscription]:
        """Subscriptions whose result set a write may have changed."""
        with self._lock:
            return [
                subscription for subscription in self._subscriptions.values()
                if subscription.collection is collection and subscription.is_affected_by(before, after)
            ]

    def deliver(self, subscriptions: Sequence[StoreSubscription],
                fetch: Callable[[Collection, Sequence[Predicate]], List[Document]]) -> None:
        """Push the current matching rows to each subscriber.

        A failing subscriber is logged and does not stop delivery to the others.
        """
        for subscription in subscriptions:
            try:
                subscription.on_change(fetch(subscription.collection, subscription.predicates))
            except Exception:
                logger.exception("Error notifying store subscriber %s", subscription.token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
