"""Error taxonomy and user-facing error classification."""

from enum import Enum

from pydantic import BaseModel


class TaskValidationError(ValueError):
    """Input rejected before any persistence call (empty title, bad date, ...)."""


class DependencyCycleError(ValueError):
    """A dependency edit would make a task depend on itself, directly or transitively."""


class AuthorizationError(PermissionError):
    """The active store refused the operation for the current identity."""


class PersistenceError(RuntimeError):
    """A store call failed for transport or server reasons."""


class RecordNotFoundError(KeyError):
    """A task or member id does not resolve to a record."""


class ErrorCategory(Enum):
    """Categories of errors surfaced by the engine."""

    VALIDATION = "validation"
    DEPENDENCY_CYCLE = "dependency_cycle"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_DEPENDENCY_CYCLE = "ERR_DEPENDENCY_CYCLE"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_NETWORK_PHRASES = ("connection", "timeout", "network", "502", "503", "504", "unreachable")


def classify_error(exception: Exception) -> ErrorCategory:
    """Return the category an exception belongs to."""
    if isinstance(exception, DependencyCycleError):
        return ErrorCategory.DEPENDENCY_CYCLE
    if isinstance(exception, TaskValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(exception, PermissionError):
        return ErrorCategory.PERMISSION_DENIED
    if isinstance(exception, KeyError):
        return ErrorCategory.NOT_FOUND

    error_str = str(exception).lower()
    if isinstance(exception, ConnectionError | TimeoutError | PersistenceError) or any(
        phrase in error_str for phrase in _NETWORK_PHRASES
    ):
        return ErrorCategory.NETWORK_ERROR
    if isinstance(exception, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised by an engine operation

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    category = classify_error(exception)

    if category is ErrorCategory.DEPENDENCY_CYCLE:
        return ErrorResponse(
            code=ErrorCode.ERR_DEPENDENCY_CYCLE,
            message="Circular dependency detected! This would create a loop.",
            suggestion="Remove one of the existing dependencies before adding this one.",
            severity=ErrorSeverity.LOW,
        )

    if category is ErrorCategory.VALIDATION:
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception) or "The task details are not valid.",
            suggestion="Check the title, dates and tags and try again.",
            severity=ErrorSeverity.LOW,
        )

    if category is ErrorCategory.PERMISSION_DENIED:
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Sign in with the account that owns this task, or ask its owner.",
            severity=ErrorSeverity.MEDIUM,
        )

    if category is ErrorCategory.NOT_FOUND:
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="That item no longer exists.",
            suggestion="Refresh your task list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if category is ErrorCategory.NETWORK_ERROR:
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Could not reach the server. Your change was not saved.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, export a backup of your data.",
        severity=ErrorSeverity.MEDIUM,
    )
