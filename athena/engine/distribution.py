"""
Performance bands, distribution counts and ranking.
"""

from typing import Iterable, Sequence, Tuple

from ..core.enums import BAND_LOWER_BOUNDS, PerformanceBand
from ..core.rollups import StudentRollup


def classify(average_grade: float) -> PerformanceBand:
    """Map an average grade to its band, evaluating bounds high to low.

    A student with no graded work has an average of 0 and therefore lands
    in Needs Improvement; no-data and failing are not told apart here.
    """
    for band in PerformanceBand:
        if average_grade >= BAND_LOWER_BOUNDS[band]:
            return band
    return PerformanceBand.NEEDS_IMPROVEMENT


def distribution(rollups: Iterable[StudentRollup]) -> Tuple[Tuple[PerformanceBand, int], ...]:
    """Count students per band; every band is present, in band order."""
    counts = {band: 0 for band in PerformanceBand}
    for rollup in rollups:
        counts[rollup.band] += 1
    return tuple(counts.items())


def rank_students(rollups: Sequence[StudentRollup]) -> Tuple[StudentRollup, ...]:
    """Highest average grade first; ties broken by student id."""
    return tuple(sorted(rollups, key=lambda rollup: (-rollup.average_grade, rollup.student_id)))
