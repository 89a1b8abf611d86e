"""
Custom exceptions and error handling for hierarchy targeting.

Provides a clear exception hierarchy with:
- Categorized errors (data unavailable vs. rejected transitions)
- Structured error responses for host applications
- A fallback helper for the tree -> flat endpoint chain
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# --- Error Categories ---


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    DATA_UNAVAILABLE = "data_unavailable"  # Repository fetch failed, absorbed
    INVALID_TRANSITION = "invalid_transition"  # Pick rejected, no state change
    PREMATURE_CONFIRM = "premature_confirm"  # Required slot unset
    TIMEOUT = "timeout"  # Fetch timed out, absorbed
    CONFIGURATION = "configuration"  # Config error, fail fast


# --- Base Exception ---


class TargetingException(Exception):
    """
    Base exception for all hierarchy targeting errors.

    Attributes:
        message: Human-readable error message
        category: Error category for handling decisions
        retryable: Whether the operation can be retried
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.DATA_UNAVAILABLE,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retryable = retryable
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for host responses."""
        result = {
            "error": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# --- Data Unavailable ---


class RepositoryError(TargetingException):
    """A taxonomy repository call failed."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.DATA_UNAVAILABLE,
            retryable=retryable,
            details=details,
            cause=cause,
        )


class MalformedPayloadError(RepositoryError):
    """The repository answered with data that cannot be parsed into nodes."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message=message, retryable=False, details=details, cause=cause)


class UnsupportedOperationError(RepositoryError):
    """The repository does not offer the requested endpoint."""

    def __init__(self, operation: str, repository: str):
        super().__init__(
            message=f"{repository} does not support {operation}",
            retryable=False,
            details={"operation": operation, "repository": repository},
        )


class FetchTimeoutError(RepositoryError):
    """A repository fetch did not finish in time."""

    def __init__(
        self, operation: str, timeout_seconds: float, details: dict[str, Any] | None = None
    ):
        details = details or {}
        details["operation"] = operation
        details["timeout_seconds"] = timeout_seconds

        super().__init__(
            message=f"Operation '{operation}' timed out after {timeout_seconds}s",
            retryable=True,
            details=details,
        )
        self.category = ErrorCategory.TIMEOUT


# --- Rejected Transitions ---


class SelectionError(TargetingException):
    """Base for transitions the selector refuses. State is left unchanged."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, category=category, retryable=False, details=details)


class InvalidPickError(SelectionError):
    """A pick whose level or parent linkage does not match the current state."""

    def __init__(
        self,
        message: str,
        level: str | None = None,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if level:
            details["level"] = level
        if node_id is not None:
            details["node_id"] = str(node_id)[:50]
        super().__init__(message, category=ErrorCategory.INVALID_TRANSITION, details=details)


class SelectionInvariantError(SelectionError):
    """Selection state has a gap: a deeper level is set under an unset one."""

    def __init__(self, taxonomy: str, missing_level: str, set_level: str):
        super().__init__(
            f"{taxonomy} selection has {set_level} set while {missing_level} is unset",
            category=ErrorCategory.INVALID_TRANSITION,
            details={
                "taxonomy": taxonomy,
                "missing_level": missing_level,
                "set_level": set_level,
            },
        )


class PrematureConfirmError(SelectionError):
    """Confirmation requested before the required slot was chosen."""

    def __init__(self, taxonomy: str, required_level: str | None = None):
        message = f"Cannot confirm {taxonomy} selection"
        if required_level:
            message = f"{message}: {required_level} has not been chosen"
        details = {"taxonomy": taxonomy}
        if required_level:
            details["required_level"] = required_level
        super().__init__(message, category=ErrorCategory.PREMATURE_CONFIRM, details=details)


# --- Configuration ---


class ConfigurationError(TargetingException):
    """Configuration or setup error - requires intervention."""

    def __init__(
        self, message: str, config_key: str | None = None, details: dict[str, Any] | None = None
    ):
        details = details or {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message, category=ErrorCategory.CONFIGURATION, retryable=False, details=details
        )


# --- Error Response Builder ---


@dataclass
class ErrorResponse:
    """Standardized error response for host applications."""

    error: str
    category: str
    retryable: bool
    details: dict[str, Any] = field(default_factory=dict)

    fallback_used: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for a host response."""
        result = {
            "error": self.error,
            "error_category": self.category,
            "retryable": self.retryable,
        }

        if self.details:
            result["error_details"] = self.details

        if self.fallback_used:
            result["fallback_used"] = self.fallback_used

        return result

    @classmethod
    def from_exception(cls, exc: Exception, fallback_used: str | None = None) -> "ErrorResponse":
        """Create ErrorResponse from an exception."""
        if isinstance(exc, TargetingException):
            return cls(
                error=exc.message,
                category=exc.category.value,
                retryable=exc.retryable,
                details=exc.details,
                fallback_used=fallback_used,
            )
        return cls(
            error=str(exc)[:200],
            category=ErrorCategory.DATA_UNAVAILABLE.value,
            retryable=False,
            fallback_used=fallback_used,
        )


# --- Graceful Degradation Helper ---


async def with_fallback(
    primary: Callable, fallback: Callable, fallback_name: str, *args, **kwargs
) -> tuple[Any, str | None]:
    """
    Execute primary function with fallback on failure.

    Returns:
        Tuple of (result, fallback_used) where fallback_used is None if primary succeeded
    """
    try:
        result = await primary(*args, **kwargs)
        return result, None
    except Exception as e:
        logger.warning(f"Primary operation failed, using fallback '{fallback_name}': {e}")
        try:
            result = await fallback(*args, **kwargs)
            return result, fallback_name
        except Exception as fallback_error:
            logger.error(f"Fallback '{fallback_name}' also failed: {fallback_error}")
            raise
