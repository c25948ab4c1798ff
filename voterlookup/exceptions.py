"""
Custom exceptions for the voter lookup application.

All application-specific exceptions inherit from VoterLookupError.
"""

from __future__ import annotations

from typing import Optional, Any


class VoterLookupError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (for debugging)
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(VoterLookupError):
    """
    Invalid or missing configuration.

    Examples:
        - DATABASE_URL and DB_HOST both unset
    """

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details=details, recoverable=False)


class ValidationError(VoterLookupError):
    """
    Request validation failed.

    Examples:
        - Ward not in the configured ward set
        - Unknown search method
        - Empty EPIC number
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
        expected: Optional[str] = None
    ):
        details = {}
        if field_name:
            details["field_name"] = field_name
        if field_value is not None:
            details["field_value"] = str(field_value)[:100]
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, recoverable=False)


class DatastoreConnectionError(VoterLookupError):
    """
    The database could not be reached.

    Never recovered by search fallbacks; surfaces to the caller.
    """

    def __init__(self, message: str, cause: Optional[str] = None):
        details = {"cause": cause} if cause else None
        super().__init__(message, details=details, recoverable=False)


class QueryExecutionError(VoterLookupError):
    """
    A statement failed on an otherwise healthy connection.

    Examples:
        - Undefined function (extension dropped mid-flight)
        - Parameter mismatch in generated SQL
    """

    def __init__(
        self,
        message: str,
        strategy: Optional[str] = None,
        cause: Optional[str] = None
    ):
        details = {}
        if strategy:
            details["strategy"] = strategy
        if cause:
            details["cause"] = cause
        super().__init__(message, details=details, recoverable=True)


class QueryBuildError(QueryExecutionError):
    """Generated SQL references parameters missing from the parameter map."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Query references unbound parameters: {', '.join(sorted(missing))}")
        self.missing = sorted(missing)


class CapabilityUnavailableError(VoterLookupError):
    """A search strategy's datastore prerequisite is missing."""

    def __init__(self, capability: str, strategy: Optional[str] = None):
        details = {"capability": capability}
        if strategy:
            details["strategy"] = strategy
        super().__init__(f"Capability unavailable: {capability}", details=details, recoverable=True)
        self.capability = capability


class VoterNotFoundError(VoterLookupError):
    """No voter matches the requested EPIC number in the ward."""

    def __init__(self, epic: str, ward: Optional[int] = None):
        details = {"epic": epic}
        if ward is not None:
            details["ward"] = ward
        super().__init__("Voter not found", details=details, recoverable=False)
