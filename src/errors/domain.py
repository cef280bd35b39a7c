"""Typed domain exceptions for API error mapping.

These exceptions provide stronger API contract guarantees than
string-based error message matching. Each carries the registry code that
selects its user-facing message and HTTP status.

Usage:
    # In service layer
    raise BlockNotFoundError(block_id)

    # In the API, a global handler turns it into the registry envelope
    EpesiError.from_domain_error(exc)  # E-2002, HTTP 404
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    error_code = "E-2003"

    def __init__(self, message: str) -> None:
        super().__init__(message)

    @property
    def context(self) -> dict[str, str]:
        """Values substituted into the registry message template."""
        return {"details": str(self)}


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    error_code = "E-2002"

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier

    @property
    def context(self) -> dict[str, str]:
        return {"resource_type": self.resource_type, "identifier": self.identifier}


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class OrganizationNotFoundError(NotFoundError):
    def __init__(self, organization_id: str) -> None:
        super().__init__("Organization", organization_id)


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: str) -> None:
        super().__init__("Project", project_id)


class DashboardNotFoundError(NotFoundError):
    def __init__(self, dashboard_id: str) -> None:
        super().__init__("Dashboard", dashboard_id)


class BlockNotFoundError(NotFoundError):
    def __init__(self, block_id: str) -> None:
        super().__init__("Block", block_id)


class ChatTurnNotFoundError(NotFoundError):
    def __init__(self, turn_id: str) -> None:
        super().__init__("Chat history entry", turn_id)


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__("Conversation", conversation_id)


class DataSourceNotFoundError(NotFoundError):
    def __init__(self, data_source_id: str) -> None:
        super().__init__("Data source", data_source_id)


class UnsupportedFormatError(DomainError):
    """Raw data is neither CSV text nor JSON records. Not retried."""

    error_code = "E-1001"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EmptyDataSourceError(DomainError):
    """Data parsed cleanly but holds no records. Maps to HTTP 422."""

    error_code = "E-1002"

    def __init__(self, name: str) -> None:
        super().__init__(f"Data source '{name}' contains no records")
        self.name = name

    @property
    def context(self) -> dict[str, str]:
        return {"name": self.name}


class ReorderMismatchError(DomainError):
    """Reorder ids do not match the dashboard's current blocks.

    Indicates a stale client; the client should reload. Maps to HTTP 409.
    """

    error_code = "E-2001"

    def __init__(
        self,
        dashboard_id: str,
        missing: set[str] | None = None,
        unexpected: set[str] | None = None,
    ) -> None:
        self.dashboard_id = dashboard_id
        self.missing = missing or set()
        self.unexpected = unexpected or set()
        super().__init__(
            f"Reorder of dashboard '{dashboard_id}' does not match its blocks "
            f"(missing={sorted(self.missing)}, unexpected={sorted(self.unexpected)})"
        )


class GenerationBackendError(DomainError):
    """The generation backend failed, timed out or was unreachable.

    Retryable by caller policy.
    """

    error_code = "E-3001"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class GenerationBackendNotConfiguredError(GenerationBackendError):
    """The generation backend has no credentials. Retrying cannot help."""


class GenerationContractViolation(DomainError):
    """The backend answered, but not with JSON of the requested shape.

    Attributes:
        raw_text: Response text as received, for logging and retry prompts.
    """

    error_code = "E-3002"

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text
