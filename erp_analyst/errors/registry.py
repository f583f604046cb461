"""Error code registry with E-XXXX format codes.

Errors are organized by the kind of failure a caller has to react to:
- E-1xxx: Validation errors (malformed input, unresolvable period or filter)
- E-2xxx: Authentication errors (missing or rejected credentials)
- E-3xxx: Upstream errors (ERP or document search transport failures)
- E-4xxx: Execution errors (unexpected failures inside a capability)

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of failure surfaced to callers."""

    AUTH = "auth"  # E-2xxx
    VALIDATION = "validation"  # E-1xxx
    UPSTREAM = "upstream"  # E-3xxx
    EXECUTION = "execution"  # E-4xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        kind: Failure kind for grouping and propagation.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action the caller should take to resolve.
        is_retryable: Whether the operation can be retried without changes.
    """

    code: str
    kind: ErrorKind
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Validation errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        kind=ErrorKind.VALIDATION,
        title="Invalid Capability Input",
        message_template="Invalid input for '{skill}': {detail}",
        remediation="Correct the arguments according to the tool's input schema.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        kind=ErrorKind.VALIDATION,
        title="Unresolvable Period",
        message_template="Cannot resolve period '{token}'. Accepted: {accepted}.",
        remediation="Use a supported period such as 'this month' or explicit start/end dates.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        kind=ErrorKind.VALIDATION,
        title="Unsupported Filter",
        message_template="Unsupported filter '{phrase}' for {model}. Accepted: {accepted}.",
        remediation="Rephrase the filter using one of the accepted phrases.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        kind=ErrorKind.VALIDATION,
        title="Invalid Date Range",
        message_template="Invalid date range: {detail}",
        remediation="Provide a start date on or before the end date.",
    ),
    "E-1005": ErrorCode(
        code="E-1005",
        kind=ErrorKind.VALIDATION,
        title="Invalid Query",
        message_template="Invalid query on '{model}': {detail}",
        remediation="Check the aggregate functions, grouping fields and domain clauses.",
    ),
    # Authentication errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        kind=ErrorKind.AUTH,
        title="Missing Credentials",
        message_template="No {integration} credentials are configured for this tenant.",
        remediation="Configure the {integration} integration for this tenant.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        kind=ErrorKind.AUTH,
        title="Credentials Rejected",
        message_template="The ERP rejected the request: {detail}",
        remediation="Verify the username, database and API key of the ERP integration.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        kind=ErrorKind.AUTH,
        title="Credential Decryption Failed",
        message_template="Stored {integration} credentials could not be decrypted.",
        remediation="Re-enter the integration credentials or restore the encryption key.",
    ),
    "E-2004": ErrorCode(
        code="E-2004",
        kind=ErrorKind.AUTH,
        title="Document Search Key Rejected",
        message_template="The document search service rejected the request: {detail}",
        remediation="Verify the API key of the documents integration.",
    ),
    # Upstream errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        kind=ErrorKind.UPSTREAM,
        title="ERP Request Failed",
        message_template="ERP {operation} on '{model}' failed: {detail}",
        remediation="Check that the ERP is reachable and retry later.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        kind=ErrorKind.UPSTREAM,
        title="Document Search Failed",
        message_template="Document search failed: {detail}",
        remediation="Check that the document index service is reachable and retry later.",
        is_retryable=True,
    ),
    # Execution errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        kind=ErrorKind.EXECUTION,
        title="Capability Execution Failed",
        message_template="'{skill}' failed unexpectedly: {detail}",
        remediation="Report this error; it indicates a defect in the capability.",
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        kind=ErrorKind.EXECUTION,
        title="Unknown Capability",
        message_template="No capability named '{skill}' is available for this tenant.",
        remediation="Call one of the tools listed for this tenant.",
    ),
    "E-4003": ErrorCode(
        code="E-4003",
        kind=ErrorKind.EXECUTION,
        title="Query Engine Failure",
        message_template="Query on '{model}' failed unexpectedly: {detail}",
        remediation="Report this error; it indicates a defect in the query engine.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up error code definition.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_kind(kind: ErrorKind) -> list[ErrorCode]:
    """Get all error codes of a kind.

    Args:
        kind: Kind to filter by.

    Returns:
        List of ErrorCode objects of that kind.
    """
    return [e for e in ERROR_REGISTRY.values() if e.kind == kind]
