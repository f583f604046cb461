"""Pydantic models for pre-send response validation."""

from enum import Enum

from pydantic import BaseModel, Field


class IssueType(str, Enum):
    """What went wrong in the prose."""

    HALLUCINATION = "hallucination"
    INCONSISTENCY = "inconsistency"
    MISSING_DATA = "missing_data"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ValidationAction(str, Enum):
    """What the caller should do with the prose."""

    SEND = "send"
    WARN = "warn"
    REGENERATE = "regenerate"


class ValidationIssue(BaseModel):
    """One problem found in the prose."""

    type: IssueType
    severity: Severity
    description: str
    suggestion: str


class PreSendValidation(BaseModel):
    """Verdict on a response before it is shown to the user."""

    approved: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    confidence: int = Field(ge=0, le=100)
    action: ValidationAction

    @property
    def critical_issues(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.CRITICAL]
