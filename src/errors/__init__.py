"""Error handling framework for Epesi dashboards.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by services
- Error formatting for API and CLI output

Error categories:
- E-1xxx: Data source errors
- E-2xxx: Validation and state errors
- E-3xxx: AI generation errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors
"""

from src.errors.domain import (
    BlockNotFoundError,
    ChatTurnNotFoundError,
    ConversationNotFoundError,
    DashboardNotFoundError,
    DataSourceNotFoundError,
    DomainError,
    EmptyDataSourceError,
    GenerationBackendError,
    GenerationBackendNotConfiguredError,
    GenerationContractViolation,
    NotFoundError,
    OrganizationNotFoundError,
    ProjectNotFoundError,
    ReorderMismatchError,
    UnsupportedFormatError,
    ValidationError,
)
from src.errors.formatter import (
    EpesiError,
    format_error,
)
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "OrganizationNotFoundError",
    "ProjectNotFoundError",
    "DashboardNotFoundError",
    "BlockNotFoundError",
    "ChatTurnNotFoundError",
    "ConversationNotFoundError",
    "DataSourceNotFoundError",
    "UnsupportedFormatError",
    "EmptyDataSourceError",
    "ReorderMismatchError",
    "GenerationBackendError",
    "GenerationBackendNotConfiguredError",
    "GenerationContractViolation",
    # Formatter
    "EpesiError",
    "format_error",
]
