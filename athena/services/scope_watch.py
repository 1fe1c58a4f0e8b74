"""
Store subscriptions that keep a scope's cached snapshot honest.

A scope depends on rows reachable only through other rows (submissions
through the class's assignments, a student's classes through enrollments),
so some subscriptions are re-targeted whenever the key set they hang off
changes.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.entities import Scope
from ..core.enums import Collection, ScopeKind
from ..core.interfaces import Document, EntityStore, Predicate

logger = logging.getLogger(__name__)

STATIC = "static"
CLASS_KEYED = "classes"
ASSIGNMENT_KEYED = "assignments"


class ScopeWatch:
    """Subscribes to every collection a scope reads and reports changes."""

    def __init__(self, store: EntityStore, scope: Scope, on_change: Callable[[], None]):
        self._store = store
        self._scope = scope
        self._on_change = on_change
        self._tokens: Dict[str, List[str]] = {}
        self._keys: Dict[str, Tuple[str, ...]] = {}
        self._lock = threading.RLock()
        self._active = False

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return sum(len(tokens) for tokens in self._tokens.values())

    def start(self) -> None:
        with self._lock:
            if self._active:
                return
            self._active = True
            identifier = self._scope.identifier

            if self._scope.kind is ScopeKind.CLASS:
                self._bind(STATIC, Collection.CLASSES, [Predicate.eq("id", identifier)])
                self._bind(STATIC, Collection.ENROLLMENTS, [Predicate.eq("classId", identifier)])
                self._bind(STATIC, Collection.ATTENDANCE, [Predicate.eq("classId", identifier)])
                self._bind(STATIC, Collection.ASSIGNMENTS, [Predicate.eq("classId", identifier)],
                           self._on_assignments)
                self._target_submissions(
                    self._store.query(Collection.ASSIGNMENTS, [Predicate.eq("classId", identifier)]))

            elif self._scope.kind is ScopeKind.STUDENT:
                self._bind(STATIC, Collection.ENROLLMENTS, [Predicate.eq("studentId", identifier)],
                           self._on_enrollments)
                self._bind(STATIC, Collection.SUBMISSIONS, [Predicate.eq("studentId", identifier)])
                self._bind(STATIC, Collection.ATTENDANCE, [Predicate.eq("studentId", identifier)])
                self._target_classes(
                    self._store.query(Collection.ENROLLMENTS, [Predicate.eq("studentId", identifier)]),
                    "classId")

            elif self._scope.kind is ScopeKind.TEACHER:
                self._bind(STATIC, Collection.CLASSES, [Predicate.eq("teacherId", identifier)],
                           self._on_classes)
                self._target_classes(
                    self._store.query(Collection.CLASSES, [Predicate.eq("teacherId", identifier)]),
                    "id")

        logger.debug("Watching %s with %d subscriptions", self._scope, self.subscription_count)

    def stop(self) -> None:
        with self._lock:
            self._active = False
            for group in list(self._tokens):
                self._unbind(group)
            self._keys.clear()

    def _bind(self, group: str, collection: Collection, predicates: Sequence[Predicate],
              handler: Optional[Callable[[List[Document]], None]] = None) -> None:
        token = self._store.subscribe(collection, predicates, handler or self._notify)
        self._tokens.setdefault(group, []).append(token)

    def _unbind(self, group: str) -> None:
        for token in self._tokens.pop(group, []):
            self._store.unsubscribe(token)

    def _retarget(self, group: str, keys: Iterable[Optional[str]]) -> Optional[Tuple[str, ...]]:
        """Drop the group's subscriptions when its key set changed; returns the new keys."""
        new_keys = tuple(sorted({key for key in keys if key}))
        if group in self._tokens and self._keys.get(group) == new_keys:
            return None
        self._unbind(group)
        self._keys[group] = new_keys
        return new_keys

    def _target_classes(self, rows: List[Document], key_field: str) -> None:
        class_ids = self._retarget(CLASS_KEYED, (row.get(key_field) for row in rows))
        if class_ids is None:
            return
        self._tokens[CLASS_KEYED] = []
        if not class_ids:
            return

        in_classes = [Predicate.is_in("classId", class_ids)]
        self._bind(CLASS_KEYED, Collection.ASSIGNMENTS, in_classes, self._on_assignments)
        if self._scope.kind is ScopeKind.STUDENT:
            self._bind(CLASS_KEYED, Collection.CLASSES, [Predicate.is_in("id", class_ids)])
        else:
            self._bind(CLASS_KEYED, Collection.ENROLLMENTS, in_classes)
            self._bind(CLASS_KEYED, Collection.ATTENDANCE, in_classes)
            self._target_submissions(self._store.query(Collection.ASSIGNMENTS, in_classes))

    def _target_submissions(self, assignment_rows: List[Document]) -> None:
        assignment_ids = self._retarget(ASSIGNMENT_KEYED, (row.get("id") for row in assignment_rows))
        if assignment_ids is None:
            return
        self._tokens[ASSIGNMENT_KEYED] = []
        if assignment_ids:
            self._bind(ASSIGNMENT_KEYED, Collection.SUBMISSIONS, [Predicate.is_in("assignmentId", assignment_ids)])

    def _on_assignments(self, rows: List[Document]) -> None:
        with self._lock:
            if not self._active:
                return
            # Students are watched through their own submissions instead.
            if self._scope.kind is not ScopeKind.STUDENT:
                self._target_submissions(rows)
        self._notify(rows)

    def _on_enrollments(self, rows: List[Document]) -> None:
        with self._lock:
            if not self._active:
                return
            self._target_classes(rows, "classId")
        self._notify(rows)

    def _on_classes(self, rows: List[Document]) -> None:
        with self._lock:
            if not self._active:
                return
            self._target_classes(rows, "id")
        self._notify(rows)

    def _notify(self, rows: List[Document]) -> None:
        if self._active:
            self._on_change()
