"""
Core modules for hierarchy targeting.

Only the error types are re-exported here; the models import them, so the
remaining core modules are imported from their own modules or from the
top-level package.
"""

from .errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorResponse,
    FetchTimeoutError,
    InvalidPickError,
    MalformedPayloadError,
    PrematureConfirmError,
    RepositoryError,
    SelectionError,
    SelectionInvariantError,
    TargetingException,
    UnsupportedOperationError,
    with_fallback,
)

__all__ = [
    "TargetingException",
    "ErrorCategory",
    "RepositoryError",
    "MalformedPayloadError",
    "UnsupportedOperationError",
    "FetchTimeoutError",
    "SelectionError",
    "InvalidPickError",
    "SelectionInvariantError",
    "PrematureConfirmError",
    "ConfigurationError",
    "ErrorResponse",
    "with_fallback",
]
