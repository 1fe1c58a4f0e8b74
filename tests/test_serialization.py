import json

import pytest

from athena.core import ReportFormat, Scope, ValidationError, export_snapshot, round_rate


@pytest.mark.parametrize("value, expected", [
    (81.66666666666667, 81.7),
    (0.25, 0.2),
    (0.35, 0.4),
    (37.5, 37.5),
    (2.45, 2.4),
    (83.33333333333333, 83.3),
    (-0.04, 0.0),
    (None, 0.0),
])
def test_round_rate_half_to_even(value, expected):
    assert round_rate(value) == expected


def test_snapshot_to_dict_is_rounded(store, snapshot_of):
    data = snapshot_of(store, Scope.for_class("c1")).to_dict()

    assert data["scope"] == {"kind": "class", "identifier": "c1", "window": "all"}
    assert data["as_of"] == "2024-03-10T12:00:00+00:00"
    assert data["overview"]["participation_rate"] == 66.7
    assert data["skills"]["Attendance"] == 37.5
    assert data["distribution"] == {"Excellent": 0, "Good": 1, "Average": 0, "Needs Improvement": 1}
    assert data["student_rollups"][0]["participation_rate"] == 83.3
    assert data["timeline"][1] == {"date": "2024-03-02", "grade": None, "attendance": 100.0}


def test_json_export(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_class("c1"))

    assert json.loads(export_snapshot(snapshot, ReportFormat.JSON)) == snapshot.to_dict()


def test_csv_export_lists_students(store, snapshot_of):
    snapshot = snapshot_of(store, Scope.for_class("c1"))

    lines = export_snapshot(snapshot, ReportFormat.CSV).splitlines()

    assert lines == [
        "student_id,average_grade,attendance_rate,participation_rate,completion_rate,graded_count,band",
        "s1,85.0,75.0,83.3,100.0,2,Good",
        "s2,0.0,0.0,50.0,50.0,0,Needs Improvement",
    ]


def test_unknown_format_is_rejected(store, snapshot_of):
    with pytest.raises(ValidationError):
        export_snapshot(snapshot_of(store, Scope.for_class("c1")), "xml")
