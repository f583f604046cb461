"""Pre-send validation of model prose against the tool results it was given.

The validator looks for invented names, amounts that contradict empty
results, suspiciously round figures that match nothing retrieved, and
answers that ignore the retrieved group names. It is a best-effort
guardrail built on regex heuristics (see numbers.py), not a proof that the
prose is correct.

Example usage:
    validator = PreSendValidator()
    validation = validator.validate(prose, [skill_result.data])
    if validation.action is ValidationAction.REGENERATE:
        prompt = generate_correction_prompt(validation)
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from erp_analyst.config import ValidatorConfig
from erp_analyst.validation.models import (
    IssueType,
    PreSendValidation,
    Severity,
    ValidationAction,
    ValidationIssue,
)
from erp_analyst.validation.numbers import (
    extract_amounts,
    find_generic_names,
    has_numeric_data,
    mentions,
)

logger = logging.getLogger(__name__)

GENERIC_NAME_PENALTY = 50
CONSISTENCY_PENALTY = 15
SUSPICIOUS_NUMBER_PENALTY = 10
MISSING_DATA_PENALTY = 30

SIGNIFICANT_AMOUNT = 1000
SUSPICIOUS_MIN = 10000
ROUND_MODULI = (50000, 100000)
MATCH_TOLERANCE = 0.05
MIN_NAME_USAGE = 0.3

ToolResults = Mapping[str, Any] | Sequence[Mapping[str, Any]] | None


# ---------------------------------------------------------------------------
# Result inspection helpers
# ---------------------------------------------------------------------------


def _result_views(results: ToolResults) -> list[dict[str, Any]]:
    """Normalize tool results to flat dicts.

    Accepts a single result or a list, either raw engine output
    (``{"grouped": ..., "total": ...}``) or a skill envelope
    (``{"success": ..., "data": {...}}``).
    """
    if results is None:
        return []
    if isinstance(results, Mapping):
        results = [results]
    views = []
    for result in results:
        if not isinstance(result, Mapping):
            continue
        data = result.get("data")
        if isinstance(data, Mapping):
            views.append({**data, "success": result.get("success", True)})
        else:
            views.append(dict(result))
    return views


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_empty_result(view: Mapping[str, Any]) -> bool:
    """Whether a result carries no data the prose could cite."""
    if view.get("success") is False:
        return True
    total = view.get("total")
    if _is_number(total) and total == 0:
        return True
    for key in ("data", "records"):
        value = view.get(key)
        if isinstance(value, list) and not value:
            return True
    grouped = view.get("grouped")
    return isinstance(grouped, Mapping) and not grouped


def group_names(view: Mapping[str, Any]) -> list[str]:
    grouped = view.get("grouped")
    if not isinstance(grouped, Mapping):
        return []
    return [str(name) for name in grouped]


def _collect_numbers(value: Any, out: set[float]) -> None:
    if _is_number(value):
        out.add(round(float(value)))
    elif isinstance(value, Mapping):
        for item in value.values():
            _collect_numbers(item, out)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_numbers(item, out)


def structured_numbers(views: Iterable[Mapping[str, Any]]) -> set[float]:
    """Every number present in the results (totals, counts, amounts)."""
    numbers: set[float] = set()
    for view in views:
        _collect_numbers(view, numbers)
    return numbers


def is_close_to_any(value: float, candidates: Iterable[float], tolerance: float = MATCH_TOLERANCE) -> bool:
    """Whether ``value`` is within ``tolerance`` relative error of a candidate."""
    return any(
        candidate != 0 and abs(value - candidate) / abs(candidate) < tolerance
        for candidate in candidates
    )


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class PreSendValidator:
    """Scores prose against tool results and recommends an action.

    Confidence starts at 100 and drops per issue: a generic name costs 50,
    each consistency issue 15, each suspicious number 10, ignoring the
    retrieved names 30. Any critical issue or a confidence under
    ``regenerate_below`` means regenerate; under ``warn_below`` means warn.
    """

    def __init__(self, regenerate_below: int = 50, warn_below: int = 70) -> None:
        self.regenerate_below = regenerate_below
        self.warn_below = warn_below

    @classmethod
    def from_config(cls, config: ValidatorConfig) -> "PreSendValidator":
        return cls(regenerate_below=config.regenerate_below, warn_below=config.warn_below)

    def validate(self, prose: str, results: ToolResults = None) -> PreSendValidation:
        """Validate prose before it is shown to the user.

        Args:
            prose: The model's answer.
            results: Structured results the answer should be based on.

        Returns:
            PreSendValidation with issues, confidence and action.
        """
        views = _result_views(results)
        labels = [name for view in views for name in group_names(view)]
        issues: list[ValidationIssue] = []
        confidence = 100

        invented = self._unmatched_generic_names(prose, labels)
        if invented:
            issues.append(ValidationIssue(
                type=IssueType.HALLUCINATION,
                severity=Severity.CRITICAL,
                description=f"Generic name detected: {', '.join(invented)}",
                suggestion="Only use names that come from the tool results.",
            ))
            confidence -= GENERIC_NAME_PENALTY

        consistency = self.check_consistency(prose, views, invented)
        issues.extend(consistency)
        confidence -= CONSISTENCY_PENALTY * len(consistency)

        suspicious = self.detect_suspicious_numbers(prose, views)
        issues.extend(suspicious)
        confidence -= SUSPICIOUS_NUMBER_PENALTY * len(suspicious)

        if any(not is_empty_result(view) for view in views):
            usage = self.check_data_usage(prose, views)
            if usage is not None:
                issues.append(usage)
                confidence -= MISSING_DATA_PENALTY

        confidence = max(0, min(100, confidence))
        if confidence < self.regenerate_below or any(i.severity is Severity.CRITICAL for i in issues):
            action = ValidationAction.REGENERATE
        elif confidence < self.warn_below:
            action = ValidationAction.WARN
        else:
            action = ValidationAction.SEND

        if issues:
            logger.info(
                "Response validation: action=%s confidence=%d issues=%s",
                action.value, confidence, [i.type.value for i in issues],
            )
        return PreSendValidation(
            approved=action is ValidationAction.SEND,
            issues=issues,
            confidence=confidence,
            action=action,
        )

    @staticmethod
    def _unmatched_generic_names(prose: str, labels: list[str]) -> list[str]:
        """Generic names in the prose that are not real group labels."""
        lowered = {label.lower() for label in labels}
        return [name for name in find_generic_names(prose) if name.lower() not in lowered]

    def check_consistency(
        self, prose: str, views: list[dict[str, Any]], invented: list[str],
    ) -> list[ValidationIssue]:
        """Amounts cited against empty results; generic names when real ones exist."""
        issues = []
        for view in views:
            if is_empty_result(view) and has_numeric_data(prose):
                if any(amount > SIGNIFICANT_AMOUNT for amount in extract_amounts(prose)):
                    issues.append(ValidationIssue(
                        type=IssueType.INCONSISTENCY,
                        severity=Severity.CRITICAL,
                        description="The tool returned no data but the answer states significant amounts.",
                        suggestion='If there is no data, answer "$ 0" or "no data".',
                    ))
            names = group_names(view)
            if names and invented:
                issues.append(ValidationIssue(
                    type=IssueType.HALLUCINATION,
                    severity=Severity.CRITICAL,
                    description="The tool returned real names but the answer uses generic ones.",
                    suggestion=f"Use the names from the tool: {', '.join(names[:3])}",
                ))
        return issues

    def detect_suspicious_numbers(self, prose: str, views: list[dict[str, Any]]) -> list[ValidationIssue]:
        """Very round large amounts that match nothing in the results.

        Only applies when the results contain numbers at all.
        """
        real = structured_numbers(views)
        if not real:
            return []
        issues = []
        for amount in extract_amounts(prose):
            if amount <= SUSPICIOUS_MIN:
                continue
            is_round = amount.is_integer() and any(int(amount) % m == 0 for m in ROUND_MODULI)
            if is_round and not is_close_to_any(amount, real):
                issues.append(ValidationIssue(
                    type=IssueType.HALLUCINATION,
                    severity=Severity.HIGH,
                    description=f"Suspicious amount {amount:,.0f}: very round and not in the tool results.",
                    suggestion="Use the exact figures from the tool results.",
                ))
        return issues

    def check_data_usage(self, prose: str, views: list[dict[str, Any]]) -> ValidationIssue | None:
        """Require a minimum share of the retrieved group names in the prose."""
        for view in views:
            names = group_names(view)
            if not names:
                continue
            used = sum(1 for name in names if mentions(prose, name))
            if used / len(names) < MIN_NAME_USAGE:
                return ValidationIssue(
                    type=IssueType.MISSING_DATA,
                    severity=Severity.HIGH,
                    description=(
                        f"Real data was available but not used: only {used} of {len(names)} "
                        "names from the tool appear in the answer."
                    ),
                    suggestion="Use the data the tool returned.",
                )
        return None


def validate_response(prose: str, results: ToolResults = None) -> PreSendValidation:
    """Validate with the default thresholds."""
    return PreSendValidator().validate(prose, results)


def generate_correction_prompt(validation: PreSendValidation) -> str:
    """Corrective instruction for a second attempt; empty when approved.

    Lists the critical issues (or every issue when none is critical) and
    ends with the rule that only tool data may be used.
    """
    if validation.approved:
        return ""
    issues = validation.critical_issues or validation.issues
    lines = ["Your previous answer had problems. Rewrite it with these corrections:", ""]
    for issue in issues:
        lines.append(f"- {issue.description}")
        lines.append(f"  -> {issue.suggestion}")
    lines.append("")
    lines.append(
        'ABSOLUTE RULE: only use data that comes from the tool result. '
        'If the result is empty, say so ("$ 0" or "no data").'
    )
    return "\n".join(lines)
