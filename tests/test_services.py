import json

import pytest

from athena.core import (
    Collection, ConcurrencyError, PerformanceSnapshot, ReportFormat, Scope, StaleSnapshot,
)
from athena.services import ConcurrencyManager, EventStream, PerformanceService

from conftest import BrokenResolver


def test_inline_manager_runs_on_the_calling_thread():
    manager = ConcurrencyManager(max_workers=0)

    future = manager.submit(lambda a, b: a + b, 2, 3)

    assert manager.is_inline
    assert future.done() and future.result() == 5


def test_inline_manager_captures_exceptions():
    manager = ConcurrencyManager(max_workers=0)

    future = manager.submit(lambda: 1 / 0)

    with pytest.raises(ZeroDivisionError):
        future.result()


def test_pooled_manager_rejects_work_after_cleanup():
    manager = ConcurrencyManager(max_workers=1)
    assert manager.submit(lambda: "done").result(timeout=5) == "done"

    manager.cleanup()

    with pytest.raises(ConcurrencyError):
        manager.submit(lambda: None)


def test_negative_workers_are_rejected():
    with pytest.raises(ConcurrencyError):
        ConcurrencyManager(max_workers=-1)


def test_event_stream_isolates_failing_subscribers():
    stream = EventStream("updates")
    received = []

    def broken(event):
        raise RuntimeError("boom")

    stream.subscribe(broken)
    token = stream.subscribe(received.append)
    stream.publish("first")
    stream.unsubscribe(token)
    stream.publish("second")

    assert received == ["first"]
    assert stream.get_subscriber_count() == 1


@pytest.fixture
def performance(store, make_cache):
    return PerformanceService(make_cache(store))


def test_first_request_watches_and_computes(performance, store):
    scope = Scope.for_class("c1")

    snapshot = performance.get_snapshot(scope)

    assert isinstance(snapshot, PerformanceSnapshot)
    assert performance.get_statistics()["watched"] == 1

    store.put(Collection.ATTENDANCE, {"classId": "c1", "studentId": "s2", "date": "2024-03-09", "status": "present"})
    assert performance.get_snapshot(scope).attendance_rate == 87.5


def test_updates_reach_listeners(performance, store):
    scope = Scope.for_student("s2")
    performance.get_snapshot(scope)
    updates = []
    token = performance.on_snapshot_updated(scope, updates.append)

    store.put(Collection.SUBMISSIONS, {"id": "sub3", "assignmentId": "a1", "studentId": "s2", "grade": 70})

    assert [snapshot.student("s2").average_grade for snapshot in updates] == [70.0]
    assert performance.unsubscribe(token) is True


def test_export_formats(performance):
    scope = Scope.for_class("c1")

    body = performance.export(scope, ReportFormat.JSON)
    csv_body = performance.export(scope, ReportFormat.CSV)

    assert json.loads(body)["overview"]["attendance_rate"] == 37.5
    assert csv_body.splitlines()[0].startswith("student_id,")


def test_export_without_any_snapshot(store, make_cache):
    performance = PerformanceService(make_cache(store, resolver=BrokenResolver(store)))
    scope = Scope.for_class("c1")

    assert isinstance(performance.get_snapshot(scope), StaleSnapshot)
    assert performance.export(scope) is None


def test_refresh_watches_scope(performance):
    scope = Scope.for_teacher("t1")

    snapshot = performance.refresh(scope)

    assert [r.class_id for r in snapshot.class_rollups] == ["c1", "c2"]
    assert performance.get_statistics()["watched"] == 1
    assert performance.get_statistics()["fresh"] == 1


def test_watched_scopes_stay_bounded(store, make_cache):
    performance = PerformanceService(make_cache(store, max_watched_scopes=16))

    for i in range(200):
        performance.get_snapshot(Scope.for_class(f"nope-{i}"))

    statistics = performance.get_statistics()
    assert statistics["watched"] == 16
    assert statistics["scopes"] == 16
    assert statistics["released"] == 184
    assert store.subscription_count <= 16 * 5
    assert isinstance(performance.get_snapshot(Scope.for_class("nope-0")), PerformanceSnapshot)
