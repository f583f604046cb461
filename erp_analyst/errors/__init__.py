"""Error handling framework for ERP Analyst.

This package provides:
- Error code registry with E-XXXX format codes
- AnalystError exception and formatting helpers

Error kinds:
- E-1xxx: Validation errors
- E-2xxx: Authentication errors
- E-3xxx: Upstream errors
- E-4xxx: Execution errors
"""

from erp_analyst.errors.formatter import AnalystError, format_error
from erp_analyst.errors.registry import (
    ERROR_REGISTRY,
    ErrorCode,
    ErrorKind,
    get_error,
    get_errors_by_kind,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorKind",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_kind",
    # Formatter
    "AnalystError",
    "format_error",
]
