"""Error formatting utilities.

This module provides:
- EpesiError, the user-facing error envelope built from the registry
- Translation of domain exceptions into that envelope
- Error formatting for CLI display
"""

from dataclasses import dataclass, field

from src.errors.domain import DomainError
from src.errors.registry import get_error


@dataclass
class EpesiError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        http_status: Status code for API responses.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    http_status: int = 400
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "EpesiError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                The special key 'details' is stored on the error instead.

        Returns:
            EpesiError instance with formatted message.
        """
        error_def = get_error(code)
        details = kwargs.get("details", {})
        if not isinstance(details, dict):
            details = {}
        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                http_status=500,
                details=details,
            )

        message = error_def.message_template
        try:
            message = message.format(**kwargs)
        except (KeyError, IndexError):
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            http_status=error_def.http_status,
            is_retryable=error_def.is_retryable,
            details=details,
        )

    @classmethod
    def from_domain_error(cls, exc: DomainError) -> "EpesiError":
        """Translate a domain exception by its kind.

        The message comes from the registry entry for ``exc.error_code``.
        Raw exception text is only substituted for codes whose template
        asks for ``{details}`` (request validation).

        Args:
            exc: The domain exception raised by a service.

        Returns:
            EpesiError for the exception's registry code.
        """
        return cls.from_code(exc.error_code, **exc.context)


def format_error(error: EpesiError, include_remediation: bool = True) -> str:
    """Format error for display to user.

    Args:
        error: The EpesiError to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string suitable for user display.
    """
    lines = [f"{error.code}: {error.message}"]
    if error.is_retryable:
        lines.append("  This error is temporary; retrying may succeed.")
    if include_remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)
