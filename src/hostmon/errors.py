"""
Error types for the hostmon service.

This module defines the MonitorError base class and subclasses for domain-specific
errors. Domain errors should be expressed using MonitorError (or subclasses) instead
of building HTTP error bodies directly or returning ad-hoc status codes.

Errors that reach the query endpoint carry their HTTP status via `http_status`;
any other code is served as 500.
"""

from __future__ import annotations

from typing import Any

# HTTP statuses for error codes served by the query endpoint
ERROR_CODE_TO_HTTP_STATUS: dict[str, int] = {
    "invalid_argument": 400,
    "storage_error": 500,
    "storage_timeout": 500,
}


class MonitorError(Exception):
    """
    Base exception class for hostmon errors.

    MonitorError instances are caught at the entry layer (query service,
    collector loop) and either mapped to an HTTP response or logged.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "probe_failed", "storage_error").
        message: Human-readable error message.
        details: Optional structured details (e.g., parameter values, context).

    Example:
        >>> raise MonitorError(
        ...     error_code="invalid_argument",
        ...     message="start_time must not be after end_time",
        ...     details={"start_time": "2024-01-02T00:00:00Z"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a MonitorError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    @property
    def http_status(self) -> int:
        """HTTP status code for this error (500 for unknown codes)."""
        return ERROR_CODE_TO_HTTP_STATUS.get(self.error_code, 500)


class InvalidArgumentError(MonitorError):
    """
    Error raised when a request carries invalid input.

    Used for malformed query parameters and inconsistent time ranges. These
    are rejected before any storage access.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class FailedPreconditionError(MonitorError):
    """
    Error raised when a precondition for the operation is not met.

    For example, starting a collector that is already running.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a FailedPreconditionError."""
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class ProbeError(MonitorError):
    """
    Error raised when an OS metric probe fails.

    The failing probe name is always present in ``details["probe"]``.
    """

    def __init__(
        self, probe: str, message: str, details: dict[str, Any] | None = None
    ) -> None:
        """Initialize a ProbeError for the named probe."""
        merged = {"probe": probe}
        if details:
            merged.update(details)
        super().__init__(error_code="probe_failed", message=message, details=merged)
        self.probe = probe


class StorageError(MonitorError):
    """
    Error raised when the durable store fails.

    Covers connection, query and scan failures. The driver exception is
    chained as ``__cause__``.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a StorageError."""
        super().__init__(error_code="storage_error", message=message, details=details)


class StorageTimeoutError(StorageError):
    """Error raised when a storage call exceeds its time bound."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a StorageTimeoutError."""
        super().__init__(message=message, details=details)
        self.error_code = "storage_timeout"

