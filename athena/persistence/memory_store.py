"""
In-memory entity store, used for tests, demos and embedding.
"""

import copy
import threading
import uuid
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.enums import Collection
from ..core.interfaces import ChangeCallback, Document, EntityStore, Predicate, matches_all
from .subscriptions import SubscriptionRegistry


class InMemoryEntityStore(EntityStore):
    """Dictionary-backed implementation of the entity store.

    Documents come back in insertion order; replacing a document keeps its
    position.
    """

    def __init__(self, seed: Optional[Mapping[str, Iterable[Document]]] = None):
        self._documents: Dict[Collection, Dict[str, Document]] = defaultdict(dict)
        self._subscriptions = SubscriptionRegistry()
        self._lock = threading.RLock()
        if seed:
            self.load(seed)

    def load(self, seed: Mapping[str, Iterable[Document]]) -> None:
        """Bulk-load documents keyed by collection name."""
        for name, documents in seed.items():
            collection = Collection(name)
            for document in documents:
                self.put(collection, document)

    def query(self, collection: Collection, predicates: Sequence[Predicate] = ()) -> List[Document]:
        with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._documents[collection].values()
                if matches_all(document, predicates)
            ]

    def subscribe(self, collection: Collection, predicates: Sequence[Predicate],
                  on_change: ChangeCallback) -> str:
        return self._subscriptions.add(collection, predicates, on_change)

    def unsubscribe(self, token: str) -> bool:
        return self._subscriptions.remove(token)

    def put(self, collection: Collection, document: Document) -> Document:
        stored = copy.deepcopy(dict(document))
        stored["id"] = str(stored.get("id") or uuid.uuid4())
        with self._lock:
            before = self._documents[collection].get(stored["id"])
            self._documents[collection][stored["id"]] = stored
        self._publish(collection, before, stored)
        return copy.deepcopy(stored)

    def delete(self, collection: Collection, document_id: str) -> bool:
        with self._lock:
            before = self._documents[collection].pop(document_id, None)
        if before is None:
            return False
        self._publish(collection, before, None)
        return True

    def count(self, collection: Collection) -> int:
        with self._lock:
            return len(self._documents[collection])

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _publish(self, collection: Collection, before: Optional[Document], after: Optional[Document]) -> None:
        # Delivered outside the store lock so subscribers may query back in.
        affected = self._subscriptions.affected(collection, before, after)
        self._subscriptions.deliver(affected, self.query)
