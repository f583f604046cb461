"""Tests for the pre-send validator and correction prompt."""

import pytest

from erp_analyst.config import ValidatorConfig
from erp_analyst.validation.models import IssueType, Severity, ValidationAction
from erp_analyst.validation.pre_send import (
    PreSendValidator,
    generate_correction_prompt,
    is_empty_result,
    structured_numbers,
    validate_response,
)

ACME_RESULT = {
    "total": 128000.0,
    "count": 5,
    "grouped": {"Acme Corp": {"total": 128000.0, "count": 5}},
}

FOUR_CUSTOMERS = {
    "total": 123456.0,
    "count": 12,
    "grouped": {
        "Acme Corp": {"total": 50000.0, "count": 4},
        "Beta SRL": {"total": 30000.0, "count": 3},
        "Gamma SA": {"total": 25000.0, "count": 3},
        "Delta LLC": {"total": 18456.0, "count": 2},
    },
}


class TestResultInspection:

    @pytest.mark.parametrize(
        "view",
        [
            {"grouped": {}},
            {"total": 0},
            {"records": []},
            {"success": False},
        ],
    )
    def test_empty_results(self, view):
        assert is_empty_result(view)

    def test_non_empty_result(self):
        assert not is_empty_result(ACME_RESULT)

    def test_numbers_collected_recursively(self):
        assert structured_numbers([ACME_RESULT]) == {128000, 5}


class TestPreSendValidator:
    """Tests for PreSendValidator.validate()."""

    def test_amount_against_empty_result_is_critical(self):
        validation = validate_response("Las ventas del mes fueron $ 5.200.000.", {"grouped": {}})

        assert validation.action is ValidationAction.REGENERATE
        assert not validation.approved
        assert validation.issues[0].type is IssueType.INCONSISTENCY
        assert validation.issues[0].severity is Severity.CRITICAL

    def test_matching_answer_is_sent(self):
        validation = validate_response("Acme Corp compró $128.000 este mes.", ACME_RESULT)

        assert validation.action is ValidationAction.SEND
        assert validation.approved
        assert validation.confidence >= 90
        assert validation.issues == []

    def test_empty_answer_for_empty_result_is_sent(self):
        validation = validate_response("No hubo ventas en el período ($ 0).", {"total": 0, "grouped": {}})
        assert validation.approved

    def test_generic_names_with_real_ones_available(self):
        validation = validate_response("Cliente A compró $ 128.000.", ACME_RESULT)

        assert validation.action is ValidationAction.REGENERATE
        assert len(validation.critical_issues) == 2
        assert "Acme Corp" in validation.critical_issues[1].suggestion

    def test_pronoun_i_is_not_a_placeholder(self):
        validation = validate_response(
            "The customer I would follow up with is Acme Corp, with $128.000 this month.",
            {"grouped": {"Acme Corp": {"total": 128000}}},
        )

        assert validation.action is ValidationAction.SEND
        assert not any(i.type is IssueType.HALLUCINATION for i in validation.issues)

    def test_generic_name_that_is_a_real_label_passes(self):
        result = {"total": 900.0, "grouped": {"Cliente A": {"total": 900.0, "count": 1}}}
        assert validate_response("Cliente A compró $ 900.", result).approved

    def test_known_fake_name(self):
        validation = validate_response("El mejor vendedor fue Juan Pérez.", ACME_RESULT)
        assert validation.action is ValidationAction.REGENERATE

    def test_skill_envelope_is_unwrapped(self):
        envelope = {"success": True, "data": ACME_RESULT}
        assert validate_response("Acme Corp: $ 128.000", [envelope]).approved

    def test_failed_envelope_counts_as_empty(self):
        envelope = {"success": False, "error": {"code": "E-3001"}}
        validation = validate_response("Vendimos $ 45.000", [envelope])
        assert validation.action is ValidationAction.REGENERATE

    def test_suspicious_round_number_is_flagged_but_sent(self):
        validation = validate_response("Acme Corp compró $ 500.000.", ACME_RESULT)

        assert validation.action is ValidationAction.SEND
        assert validation.confidence == 90
        assert validation.issues[0].severity is Severity.HIGH

    def test_ignored_names_and_round_figure_warn(self):
        validation = validate_response("We sold about $ 500.000 in total.", FOUR_CUSTOMERS)

        assert validation.confidence == 60
        assert validation.action is ValidationAction.WARN
        assert {i.type for i in validation.issues} == {IssueType.HALLUCINATION, IssueType.MISSING_DATA}

    def test_thresholds_from_config(self):
        validator = PreSendValidator.from_config(ValidatorConfig(regenerate_below=95, warn_below=99))
        validation = validator.validate("Acme Corp compró $ 500.000.", ACME_RESULT)
        assert validation.action is ValidationAction.REGENERATE

    def test_confidence_never_negative(self):
        prose = "Cliente A, Cliente B y Juan Pérez vendieron $ 500.000, $ 600.000 y $ 700.000"
        validation = validate_response(prose, FOUR_CUSTOMERS)
        assert validation.confidence == 0


class TestCorrectionPrompt:

    def test_lists_critical_issues(self):
        validation = validate_response("Las ventas del mes fueron $ 5.200.000.", {"grouped": {}})

        prompt = generate_correction_prompt(validation)

        assert "The tool returned no data" in prompt
        assert "$ 0" in prompt
        assert prompt.rstrip().endswith('("$ 0" or "no data").')

    def test_approved_has_no_prompt(self):
        assert generate_correction_prompt(validate_response("Acme Corp: $ 128.000", ACME_RESULT)) == ""
