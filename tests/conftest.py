from datetime import datetime, timezone

import pytest

from athena.core import ResolutionError, Scope
from athena.engine import JoinResolver, build_snapshot
from athena.persistence import InMemoryEntityStore
from athena.services import ConcurrencyManager, RollupCache


FIXED_NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class BrokenResolver(JoinResolver):
    """Fails every resolve while ``broken`` is set."""

    def __init__(self, store, broken=True):
        super().__init__(store)
        self.broken = broken

    def resolve(self, scope):
        if self.broken:
            raise ResolutionError("store unavailable", error_code="STORE_IO")
        return super().resolve(scope)


def school_documents():
    """Two teachers, three classes, two students.

    Class c1 is the main fixture: s1 attends 3 of 4 sessions and scores
    90% and 80%; s2 has one ungraded submission and no attendance rows.
    """
    return {
        "classes": [
            {"id": "c1", "name": "Algebra I", "teacherId": "t1", "subject": "Mathematics"},
            {"id": "c2", "name": "Biology", "teacherId": "t1", "subject": "Science"},
            {"id": "c3", "name": "Art", "teacherId": "t2"},
        ],
        "enrollments": [
            {"id": "e1", "studentId": "s1", "classId": "c1"},
            {"id": "e2", "studentId": "s2", "classId": "c1"},
            {"id": "e3", "studentId": "s1", "classId": "c2"},
        ],
        "assignments": [
            {"id": "a1", "classId": "c1", "title": "Quiz 1", "dueDate": "2024-03-01", "totalPoints": 100},
            {"id": "a2", "classId": "c1", "title": "Homework", "dueDate": "2024-03-05", "totalPoints": 50},
            {"id": "a3", "classId": "c2", "title": "Lab report", "dueDate": "2024-03-04", "totalPoints": 20},
        ],
        "submissions": [
            {"id": "sub1", "assignmentId": "a1", "studentId": "s1", "grade": 90,
             "submittedAt": "2024-03-01T10:00:00Z"},
            {"id": "sub2", "assignmentId": "a2", "studentId": "s1", "grade": 40,
             "submittedAt": "2024-03-05T09:00:00Z"},
            {"id": "sub3", "assignmentId": "a1", "studentId": "s2", "grade": None,
             "submittedAt": "2024-03-02T08:00:00Z"},
            {"id": "sub4", "assignmentId": "a3", "studentId": "s1", "grade": 18,
             "submittedAt": "2024-03-04T15:30:00Z"},
        ],
        "attendance": [
            {"id": "att1", "classId": "c1", "studentId": "s1", "date": "2024-03-01", "status": "present"},
            {"id": "att2", "classId": "c1", "studentId": "s1", "date": "2024-03-02", "status": "present"},
            {"id": "att3", "classId": "c1", "studentId": "s1", "date": "2024-03-03", "status": "absent"},
            {"id": "att4", "classId": "c1", "studentId": "s1", "date": "2024-03-04", "status": "present"},
            {"id": "att5", "classId": "c2", "studentId": "s1", "date": "2024-03-04", "status": "absent"},
        ],
    }


@pytest.fixture
def store():
    return InMemoryEntityStore(school_documents())


@pytest.fixture
def empty_store():
    return InMemoryEntityStore()


@pytest.fixture
def snapshot_of():
    """Resolve and reduce a scope against a store at FIXED_NOW."""
    def _snapshot_of(store, scope: Scope):
        return build_snapshot(scope, JoinResolver(store).resolve(scope), FIXED_NOW)
    return _snapshot_of


@pytest.fixture
def inline_manager():
    manager = ConcurrencyManager(max_workers=0)
    yield manager
    manager.cleanup()


@pytest.fixture
def make_cache(inline_manager):
    """Build a RollupCache that recomputes inline with a fixed clock."""
    caches = []

    def _make_cache(store, resolver=None, auto_refresh=True, concurrency_manager=None, **options):
        cache = RollupCache(
            store,
            concurrency_manager or inline_manager,
            resolver=resolver,
            auto_refresh=auto_refresh,
            clock=lambda: FIXED_NOW,
            **options
        )
        caches.append(cache)
        return cache

    yield _make_cache
    for cache in caches:
        cache.close()
