"""
Display and export boundary for computed rollups.

The engine keeps full floating-point precision; rates are rounded here, and
only here, to one decimal place using round-half-to-even on the value's
decimal representation.
"""

import csv
import io
import json
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional

from .enums import ReportFormat
from .exceptions import ValidationError


_ONE_DECIMAL = Decimal("0.1")

STUDENT_CSV_COLUMNS = [
    "student_id",
    "average_grade",
    "attendance_rate",
    "participation_rate",
    "completion_rate",
    "graded_count",
    "band",
]


def round_rate(value: Optional[float]) -> float:
    """Round a rate to one decimal place, half-to-even; None rounds to 0.0."""
    if value is None:
        return 0.0
    rounded = Decimal(repr(float(value))).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_EVEN)
    # Normalise negative zero.
    return float(rounded) + 0.0


def export_snapshot(snapshot, report_format: ReportFormat = ReportFormat.JSON) -> str:
    """Render a snapshot for export.

    JSON carries the whole rounded snapshot; CSV carries the student table.
    """
    data = snapshot.to_dict()
    if report_format is ReportFormat.JSON:
        return json.dumps(data, indent=2, sort_keys=True)
    if report_format is ReportFormat.CSV:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=STUDENT_CSV_COLUMNS, lineterminator="\n")
        writer.writeheader()
        for row in data["student_rollups"]:
            writer.writerow(row)
        return buffer.getvalue()
    raise ValidationError(f"Unsupported report format: {report_format}")
