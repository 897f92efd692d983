"""
Custom exception classes for the GitLab to Azure DevOps migration tool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import NormalizedError


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when the client configuration is missing or invalid."""


class ApiError(MigrationError):
    """Raised when a REST call fails for good (permanent status or retries exhausted)."""

    error: NormalizedError
    attempts: int
    connection_anomaly: bool

    def __init__(self, error: NormalizedError, *, method: str, attempts: int, connection_anomaly: bool = False) -> None:
        self.error = error
        self.method = method
        self.attempts = attempts
        self.connection_anomaly = connection_anomaly
        status = error.status if error.status else "n/a"
        plural = "attempt" if attempts == 1 else "attempts"
        msg = (
            f"[{error.side.label}] {method} {error.endpoint} failed "
            f"(HTTP {status}) after {attempts} {plural}: {error.message}"
        )
        super().__init__(msg)

    @property
    def status(self) -> int:
        return self.error.status


class OperationTimeoutError(MigrationError):
    """Raised when a long-running operation does not finish within the poll budget."""

    def __init__(self, operation_id: str, attempts: int) -> None:
        self.operation_id = operation_id
        self.attempts = attempts
        super().__init__(f"Operation {operation_id} did not complete after {attempts} polls")


class OperationFailedError(MigrationError):
    """Raised when a long-running operation ended as failed or cancelled."""


class UnexpectedResponseError(MigrationError):
    """Raised when a response payload does not have the shape the caller requires."""
