"""
Custom exceptions for the Athena engine.
"""

from typing import Optional, Any, Dict


class AthenaException(Exception):
    """Base exception for all Athena-related errors."""
    
    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ValidationError(AthenaException):
    """Raised when data validation fails."""
    pass


class ConfigurationError(AthenaException):
    """Raised when configuration is invalid."""
    pass


class StoreError(AthenaException):
    """Raised when the entity store cannot serve a query or subscription."""
    pass


class ResolutionError(AthenaException):
    """Raised when the records for a scope cannot be resolved."""
    pass


class ConcurrencyError(AthenaException):
    """Raised when concurrency control fails."""
    pass


class RecomputeCancelled(AthenaException):
    """Raised inside a recompute that a newer change has superseded."""
    pass
