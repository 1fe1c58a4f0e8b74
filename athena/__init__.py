"""
Athena: performance aggregation for a role-based school dashboard

Joins enrollments, classes, assignments, submissions and attendance pulled
from a document store and reduces them into per-class, per-student and
per-subject statistics that are recomputed whenever the underlying records change.
"""

__version__ = "1.0.0"
__author__ = "Athena Development Team"
__description__ = "Performance aggregation engine for school dashboards"
