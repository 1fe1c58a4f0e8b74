import pytest

from athena.core import Collection, PerformanceBand, Scope, TimeWindow
from athena.engine import JoinResolver, ResolvedSet, build_snapshot
from athena.persistence import InMemoryEntityStore

from conftest import FIXED_NOW


def test_class_snapshot(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_class("c1"))

    s1 = snapshot.student("s1")
    assert s1.average_grade == 85.0
    assert s1.attendance_rate == 75.0
    assert s1.completion_rate == 100.0
    assert s1.participation_rate == pytest.approx(5 / 6 * 100)
    assert s1.graded_count == 2
    assert s1.band is PerformanceBand.GOOD

    s2 = snapshot.student("s2")
    assert s2.average_grade == 0.0
    assert s2.attendance_rate == 0.0
    assert s2.completion_rate == 50.0
    assert s2.graded_count == 0
    assert s2.band is PerformanceBand.NEEDS_IMPROVEMENT

    assert snapshot.attendance_rate == 37.5
    assert snapshot.completion_rate == 100.0
    assert snapshot.average_grade == 85.0
    assert snapshot.distribution_counts == {
        PerformanceBand.EXCELLENT: 0,
        PerformanceBand.GOOD: 1,
        PerformanceBand.AVERAGE: 0,
        PerformanceBand.NEEDS_IMPROVEMENT: 1,
    }


def test_class_rollup(store, snapshot_of):
    (rollup,) = snapshot_of(store, Scope.for_class("c1")).class_rollups

    assert rollup.class_id == "c1"
    assert rollup.class_name == "Algebra I"
    assert rollup.subject == "Mathematics"
    assert (rollup.student_count, rollup.assignment_count) == (2, 2)
    assert rollup.attendance_rate == 37.5
    assert (rollup.attendance_total, rollup.present_count, rollup.absent_count) == (4, 3, 1)
    assert rollup.to_dict()["present_count"] == 3


def test_student_snapshot_spans_every_enrolled_class(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_student("s1"))

    (rollup,) = snapshot.student_rollups
    assert rollup.average_grade == pytest.approx(260 / 3)
    assert rollup.attendance_rate == 60.0
    assert rollup.participation_rate == 75.0
    assert [r.class_id for r in snapshot.class_rollups] == ["c1", "c2"]
    biology = snapshot.class_rollups[1]
    assert (biology.attendance_total, biology.present_count, biology.absent_count) == (1, 0, 1)
    assert snapshot.subject("Mathematics").average_grade == 85.0
    assert snapshot.subject("Science").average_grade == 90.0
    assert snapshot.subject("History") is None


def test_teacher_snapshot(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_teacher("t1"))

    assert [r.student_id for r in snapshot.student_rollups] == ["s1", "s2"]
    assert snapshot.student("s1").attendance_rate == 60.0
    assert [r.class_id for r in snapshot.class_rollups] == ["c1", "c2"]
    assert snapshot.overview()["total_students"] == 2


def test_roster_mean_attendance():
    store = InMemoryEntityStore({
        "classes": [{"id": "c1", "teacherId": "t1"}],
        "enrollments": [{"studentId": "A", "classId": "c1"}, {"studentId": "B", "classId": "c1"}],
        "attendance": [
            {"classId": "c1", "studentId": "A", "date": f"2024-03-0{day}", "status": status}
            for day, status in [(1, "present"), (2, "present"), (3, "absent"), (4, "present")]
        ],
    })
    scope = Scope.for_class("c1")

    snapshot = build_snapshot(scope, JoinResolver(store).resolve(scope), FIXED_NOW)

    assert snapshot.student("A").attendance_rate == 75.0
    assert snapshot.student("B").attendance_rate == 0.0
    assert snapshot.attendance_rate == 37.5


def test_three_graded_submissions_land_in_good_band():
    store = InMemoryEntityStore({
        "classes": [{"id": "c1", "teacherId": "t1"}],
        "enrollments": [{"studentId": "s1", "classId": "c1"}],
        "assignments": [{"id": f"q{i}", "classId": "c1", "totalPoints": 100} for i in range(3)],
        "submissions": [
            {"assignmentId": f"q{i}", "studentId": "s1", "grade": grade}
            for i, grade in enumerate([95, 82, 68])
        ],
    })
    scope = Scope.for_class("c1")

    snapshot = build_snapshot(scope, JoinResolver(store).resolve(scope), FIXED_NOW)

    assert snapshot.average_grade == pytest.approx(81.6666666)
    assert snapshot.to_dict()["overview"]["average_grade"] == 81.7
    assert snapshot.students_in_band(PerformanceBand.GOOD)[0].student_id == "s1"


def test_empty_class_yields_zeros(empty_store, snapshot_of):
    snapshot = snapshot_of(empty_store, Scope.for_class("c1"))

    assert snapshot.attendance_rate == 0.0
    assert snapshot.completion_rate == 0.0
    assert snapshot.average_grade == 0.0
    assert snapshot.participation_rate == 0.0
    assert snapshot.timeline == ()
    assert snapshot.student_rollups == ()
    assert snapshot.distribution_counts == {band: 0 for band in PerformanceBand}
    (rollup,) = snapshot.class_rollups
    assert (rollup.class_id, rollup.subject, rollup.student_count) == ("c1", "Unknown", 0)


def test_empty_teacher_scope_has_no_class_rollups():
    snapshot = build_snapshot(Scope.for_teacher("t9"), ResolvedSet.empty(), FIXED_NOW)

    assert snapshot.class_rollups == ()
    assert snapshot.overview()["total_students"] == 0


def test_snapshot_is_deterministic(store, snapshot_of):
    scope = Scope.for_teacher("t1")

    assert snapshot_of(store, scope) == snapshot_of(store, scope)


def test_enrollment_change_moves_the_class_rate(store, snapshot_of):
    before = snapshot_of(store, Scope.for_class("c1"))
    store.delete(Collection.ENROLLMENTS, "e2")

    after = snapshot_of(store, Scope.for_class("c1"))

    assert before.attendance_rate == 37.5
    assert after.attendance_rate == 75.0


def test_week_window(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_class("c1", TimeWindow.WEEK))

    assert snapshot.student("s1").average_grade == 80.0
    assert snapshot.student("s1").attendance_rate == 50.0
    assert snapshot.student("s2").completion_rate == 0.0
    assert snapshot.attendance_rate == 25.0
    assert [point.date.isoformat() for point in snapshot.timeline] == ["2024-03-03", "2024-03-04", "2024-03-05"]


def test_overview_and_skills(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_class("c1"))

    assert snapshot.overview()["top_performers"] == 0
    assert snapshot.ranking == ("s1", "s2")
    assert [rollup.student_id for rollup in snapshot.ranked_students()] == ["s1", "s2"]
    assert snapshot.overview()["needs_improvement"] == 1
    assert set(snapshot.skills()) == {"Grades", "Attendance", "Participation", "Assignments"}
    assert snapshot.skills()["Attendance"] == 37.5


RATE_KEYS = {
    "average_grade", "attendance_rate", "participation_rate", "completion_rate", "grade", "attendance",
    "Grades", "Attendance", "Participation", "Assignments",
}


def collect_rates(data):
    if isinstance(data, dict):
        for key, value in data.items():
            if key in RATE_KEYS and value is not None:
                yield key, value
            else:
                yield from collect_rates(value)
    elif isinstance(data, list):
        for item in data:
            yield from collect_rates(item)


def test_rates_stay_within_bounds_for_irregular_records():
    store = InMemoryEntityStore({
        "classes": [{"id": "c1", "teacherId": "t1", "subject": "Physics"}],
        "enrollments": [{"studentId": "A", "classId": "c1"}, {"studentId": "B", "classId": "c1"}],
        "assignments": [
            {"id": "x", "classId": "c1", "totalPoints": 10, "dueDate": "2024-03-01"},
            {"id": "y", "classId": "c1", "totalPoints": 10, "dueDate": "2024-03-02"},
        ],
        "submissions": [
            {"assignmentId": "x", "studentId": "A", "grade": 25, "submittedAt": "2024-03-01"},
            {"assignmentId": "y", "studentId": "A", "grade": -5, "submittedAt": "2024-03-02"},
            {"assignmentId": "x", "studentId": "B", "grade": 10, "submittedAt": "2024-03-01"},
        ],
        "attendance": [
            {"classId": "c1", "studentId": "A", "date": "2024-03-01", "status": "present"},
            {"classId": "c1", "studentId": "A", "date": "2024-03-01", "status": "absent"},
            {"classId": "c1", "studentId": "A", "date": "2024-03-02", "status": "present"},
            {"classId": "c1", "studentId": "A", "date": "2024-03-02", "status": "present"},
            {"classId": "c1", "studentId": "B", "date": "2024-03-01", "status": "present"},
        ],
    })
    scope = Scope.for_class("c1")

    snapshot = build_snapshot(scope, JoinResolver(store).resolve(scope), FIXED_NOW)
    rates = list(collect_rates(snapshot.to_dict()))

    assert len(rates) > 20
    assert all(0.0 <= value <= 100.0 for _, value in rates), rates
    assert snapshot.student("A").average_grade == 50.0
    assert snapshot.class_rollups[0].attendance_total == 3
    assert snapshot.ranking == ("B", "A")
    assert snapshot.to_dict()["ranking"] == ["B", "A"]
