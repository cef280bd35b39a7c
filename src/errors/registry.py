"""Error code registry with E-XXXX format codes.

This module defines the error code system for Epesi dashboards,
organizing errors into categories:
- E-1xxx: Data source errors
- E-2xxx: Validation and state errors
- E-3xxx: AI generation errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors

Each error includes a code, title, user-facing message template, and
remediation steps. The message shown to a user is always taken from this
table by error kind, never from raw exception text.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    DATA = "data"  # E-1xxx
    VALIDATION = "validation"  # E-2xxx
    GENERATION = "generation"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        http_status: Status code used when the error reaches the API.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    http_status: int = 400
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Data source errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.DATA,
        title="Unsupported Data Format",
        message_template="Could not read data source.",
        remediation="Upload CSV text with a header row, or JSON records (an array of objects or a single object).",
        http_status=422,
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.DATA,
        title="Empty Data Source",
        message_template="The data source '{name}' contains no records.",
        remediation="Add rows to the data source and upload it again.",
        http_status=422,
    ),
    # Validation and state errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Dashboard Changed",
        message_template="Dashboard changed, please refresh.",
        remediation="Reload the dashboard and repeat the reorder.",
        http_status=409,
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Not Found",
        message_template="{resource_type} '{identifier}' not found.",
        remediation="Check the identifier, or reload the page if it was deleted elsewhere.",
        http_status=404,
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Invalid Request",
        message_template="{details}",
        remediation="Correct the request and retry.",
        http_status=400,
    ),
    # AI generation errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.GENERATION,
        title="AI Service Unavailable",
        message_template="AI service unavailable, try again.",
        remediation="Wait a moment and resend the prompt.",
        http_status=502,
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.GENERATION,
        title="Invalid Chart Output",
        message_template="Could not generate a valid chart.",
        remediation="Rephrase the prompt, or name the fields you want charted.",
        http_status=502,
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Database Error",
        message_template="Database operation failed.",
        remediation="Retry the operation. Contact support if the issue persists.",
        http_status=500,
        is_retryable=True,
    ),
    # Auth errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Authentication Failed",
        message_template="Invalid or missing API key.",
        remediation="Send the configured key in the X-API-Key header.",
        http_status=401,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
