"""Shared constants and errors for tenant integration management.

Neutral module with no DB or service-layer imports.
"""

# --- Shared Constants ---

ODOO = "odoo"
DOCUMENTS = "documents"

VALID_INTEGRATIONS: frozenset[str] = frozenset({ODOO, DOCUMENTS})

VALID_STATUSES: frozenset[str] = frozenset({"active", "disabled", "error"})

RUNTIME_USABLE_STATUSES: frozenset[str] = frozenset({"active"})

# Required non-secret columns per integration
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    ODOO: ("url", "database", "username"),
    DOCUMENTS: ("url",),
}

MAX_FIELD_LENGTH = 1024
MAX_SECRET_LENGTH = 4096


# --- Validation Error ---


class IntegrationValidationError(Exception):
    """Raised when integration settings fail validation.

    Attributes:
        code: Machine-readable error code (e.g. 'INVALID_INTEGRATION').
        message: Human-readable description.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")
