"""
API module for the REST implementation.
"""

from .rest_api import AthenaRestAPI

__all__ = [
    "AthenaRestAPI",
]
