"""
Exception classes for the tracking migration rollout controller.

Provides the error hierarchy used by the flag resolver, the pluggable stores and the
rollout controller. Only ``UnknownFlagError`` (and ``ControllerClosedError`` after
teardown) ever reaches a caller of the controller; ``SourceUnavailable`` is raised by
store implementations and absorbed by the controller so that a broken backend never
disables the rollout decision path.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class MigrationFlagError(Exception):
    """
    Base exception class for all migration flag errors.

    Attributes:
        message: Human-readable error description
        error_code: Standardized error code for monitoring and alerting
        details: Additional error context for debugging and observability
        timestamp: Error occurrence timestamp for correlation with logs
    """

    def __init__(
        self,
        message: str,
        error_code: str = "MIGRATION_FLAG_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON serialization in Flask error responses.

        Returns:
            Dictionary containing error information suitable for HTTP responses
        """
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class UnknownFlagError(MigrationFlagError):
    """
    Raised when a mutation references a name outside the closed flag set.

    The controller rejects the mutation before touching any state.
    """

    def __init__(self, flag_name: Any):
        super().__init__(
            f"Unknown migration flag: {flag_name!r}",
            error_code="UNKNOWN_FLAG",
            details={"flag_name": str(flag_name)}
        )
        self.flag_name = flag_name


class SourceUnavailable(MigrationFlagError):
    """
    Raised by override, session and audit stores when their backend is unreachable,
    times out or returns malformed data.

    Attributes:
        store: Logical store name (override, session, audit, alert)
        operation: Store operation that failed
        cause: Original backend exception, if any
    """

    def __init__(
        self,
        store: str,
        operation: str,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"{store} store unavailable during {operation}",
            error_code="SOURCE_UNAVAILABLE",
            details={
                "store": store,
                "operation": operation,
                "cause": repr(cause) if cause is not None else None
            }
        )
        self.store = store
        self.operation = operation
        self.cause = cause


class ControllerClosedError(MigrationFlagError):
    """Raised when a mutation is attempted on a controller that has been torn down."""

    def __init__(self, operation: str):
        super().__init__(
            f"Rollout controller is closed; cannot {operation}",
            error_code="CONTROLLER_CLOSED",
            details={"operation": operation}
        )


class ConfigurationError(MigrationFlagError):
    """Raised when rollout settings are invalid at construction time."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)


__all__ = [
    'MigrationFlagError',
    'UnknownFlagError',
    'SourceUnavailable',
    'ControllerClosedError',
    'ConfigurationError',
]
