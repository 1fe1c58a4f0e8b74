import pytest

from athena.core import PerformanceBand, Scope
from athena.main import AthenaPlatform


def test_sample_data_produces_a_full_snapshot():
    platform = AthenaPlatform({"store_type": "memory", "max_workers": 0})
    try:
        class_id = platform.create_sample_data()
        snapshot = platform.performance_service.refresh(Scope.for_class(class_id))
    finally:
        platform.stop_platform()

    assert [r.student_id for r in snapshot.student_rollups] == ["student-1", "student-2", "student-3"]
    assert snapshot.student("student-1").average_grade == 93.5
    assert snapshot.student("student-3").band is PerformanceBand.NEEDS_IMPROVEMENT
    assert snapshot.class_rollups[0].attendance_rate == pytest.approx(200 / 3)
    assert sum(snapshot.distribution_counts.values()) == 3


def test_run_demo_prints_report(capsys):
    platform = AthenaPlatform({"store_type": "memory", "max_workers": 0})
    try:
        platform.run_demo()
    finally:
        platform.stop_platform()

    output = capsys.readouterr().out
    assert "=== Class Overview ===" in output
    assert "student_id,average_grade" in output
