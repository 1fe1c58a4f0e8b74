"""
Core interfaces and abstract base classes for the Athena engine.
"""

import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .enums import Collection
from .exceptions import ValidationError


Document = Dict[str, Any]
ChangeCallback = Callable[[List[Document]], None]


_COMPARATORS = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Predicate:
    """An equality, membership or range condition on one document field."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op != "in" and self.op not in _COMPARATORS:
            raise ValidationError(f"Unsupported predicate operator: {self.op}")
        if self.op == "in":
            # Normalise to a tuple so predicates stay hashable and comparable.
            object.__setattr__(self, "value", tuple(self.value))

    @classmethod
    def eq(cls, field: str, value: Any) -> "Predicate":
        return cls(field, "==", value)

    @classmethod
    def is_in(cls, field: str, values: Iterable[Any]) -> "Predicate":
        return cls(field, "in", tuple(values))

    def matches(self, document: Document) -> bool:
        """Check a document against this predicate; missing fields never match."""
        if self.field not in document or document[self.field] is None:
            return False
        actual = document[self.field]
        if self.op == "in":
            return actual in self.value
        try:
            return _COMPARATORS[self.op](actual, self.value)
        except TypeError:
            return False


def matches_all(document: Document, predicates: Sequence[Predicate]) -> bool:
    return all(predicate.matches(document) for predicate in predicates)


class EntityStore(ABC):
    """Typed read access to the school collections plus change subscriptions.

    All I/O lives behind this interface; the engine only works on the
    materialized rows it returns.
    """

    @abstractmethod
    def query(self, collection: Collection, predicates: Sequence[Predicate] = ()) -> List[Document]:
        """Return the documents of a collection matching every predicate."""
        pass

    @abstractmethod
    def subscribe(self, collection: Collection, predicates: Sequence[Predicate],
                  on_change: ChangeCallback) -> str:
        """Deliver the current matching documents to ``on_change`` whenever they change.

        Returns an unsubscribe token.
        """
        pass

    @abstractmethod
    def unsubscribe(self, token: str) -> bool:
        """Cancel a subscription; returns False when the token is unknown."""
        pass

    @abstractmethod
    def put(self, collection: Collection, document: Document) -> Document:
        """Insert or replace a document, assigning an ``id`` when absent."""
        pass

    @abstractmethod
    def delete(self, collection: Collection, document_id: str) -> bool:
        """Delete a document by id."""
        pass

    def get(self, collection: Collection, document_id: str) -> Optional[Document]:
        """Fetch a single document by id."""
        rows = self.query(collection, [Predicate.eq("id", document_id)])
        return rows[0] if rows else None

    def close(self) -> None:
        """Release store resources."""
        pass
