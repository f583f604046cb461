"""Application error type and formatting helpers."""

from dataclasses import dataclass, field

from erp_analyst.errors.registry import ErrorKind, get_error


@dataclass
class AnalystError(Exception):
    """Application error with code, kind, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        kind: Failure kind (auth, validation, upstream, execution).
        message: Human-readable error message.
        remediation: Action the caller should take to resolve.
        is_retryable: Whether the operation can be retried without changes.
        details: Additional context dictionary.
    """

    code: str
    kind: ErrorKind
    message: str
    remediation: str = ""
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"[{self.code}] {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "AnalystError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                The special key 'details' is stored on the error rather
                than substituted into the message.

        Returns:
            Error instance with formatted message.
        """
        details = kwargs.pop("details", {})
        if not isinstance(details, dict):
            details = {}

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                kind=ErrorKind.EXECUTION,
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                details=details,
            )

        message = error_def.message_template
        remediation = error_def.remediation
        try:
            message = message.format(**kwargs)
            remediation = remediation.format(**kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            kind=error_def.kind,
            message=message,
            remediation=remediation,
            is_retryable=error_def.is_retryable,
            details=details,
        )


def format_error(error: AnalystError, include_remediation: bool = True) -> str:
    """Format error for display to the model or an operator.

    Args:
        error: Error to format.
        include_remediation: Whether to append the remediation line.

    Returns:
        Formatted multi-line string.
    """
    lines = [f"{error.code} ({error.kind.value}): {error.message}"]
    if include_remediation and error.remediation:
        lines.append(f"Remediation: {error.remediation}")
    return "\n".join(lines)
