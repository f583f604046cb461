"""Pre-send validation of model answers against retrieved data."""

from erp_analyst.validation.gate import GateOutcome, ResponseGate
from erp_analyst.validation.models import (
    IssueType,
    PreSendValidation,
    Severity,
    ValidationAction,
    ValidationIssue,
)
from erp_analyst.validation.numbers import KNOWN_FAKE_NAMES, extract_amounts, find_generic_names, parse_number
from erp_analyst.validation.pre_send import PreSendValidator, generate_correction_prompt, validate_response

__all__ = [
    "PreSendValidator",
    "PreSendValidation",
    "ValidationIssue",
    "ValidationAction",
    "IssueType",
    "Severity",
    "validate_response",
    "generate_correction_prompt",
    "ResponseGate",
    "GateOutcome",
    "KNOWN_FAKE_NAMES",
    "extract_amounts",
    "find_generic_names",
    "parse_number",
]
