"""Tests for the error code registry and AnalystError."""

import re

import pytest

from erp_analyst.errors import (
    ERROR_REGISTRY,
    AnalystError,
    ErrorKind,
    format_error,
    get_error,
    get_errors_by_kind,
)

_KIND_BY_PREFIX = {
    "1": ErrorKind.VALIDATION,
    "2": ErrorKind.AUTH,
    "3": ErrorKind.UPSTREAM,
    "4": ErrorKind.EXECUTION,
}


class TestErrorRegistry:
    """Tests for registry consistency."""

    def test_codes_are_well_formed(self):
        for code, definition in ERROR_REGISTRY.items():
            assert re.fullmatch(r"E-\d{4}", code)
            assert definition.code == code

    def test_kind_matches_code_range(self):
        for code, definition in ERROR_REGISTRY.items():
            assert definition.kind is _KIND_BY_PREFIX[code[2]], code

    def test_every_code_has_remediation(self):
        assert all(definition.remediation for definition in ERROR_REGISTRY.values())

    def test_lookup(self):
        assert get_error("E-2001").title == "Missing Credentials"
        assert get_error("E-9999") is None

    def test_by_kind(self):
        upstream = {e.code for e in get_errors_by_kind(ErrorKind.UPSTREAM)}
        assert upstream == {"E-3001", "E-3002"}


class TestAnalystError:
    """Tests for AnalystError.from_code()."""

    def test_template_substitution(self):
        error = AnalystError.from_code("E-2001", integration="odoo")
        assert error.message == "No odoo credentials are configured for this tenant."
        assert error.remediation == "Configure the odoo integration for this tenant."
        assert error.kind is ErrorKind.AUTH

    def test_missing_placeholder_keeps_template(self):
        error = AnalystError.from_code("E-3001", detail="timeout")
        assert "{operation}" in error.message

    def test_retryable_flag(self):
        assert AnalystError.from_code("E-3001", operation="x", model="y", detail="z").is_retryable
        assert not AnalystError.from_code("E-1001", skill="x", detail="y").is_retryable

    def test_unknown_code(self):
        error = AnalystError.from_code("E-9999")
        assert error.kind is ErrorKind.EXECUTION
        assert error.message == "Unknown error: E-9999"

    def test_details_stored_not_substituted(self):
        error = AnalystError.from_code("E-4002", skill="x", details={"tenant": "acme"})
        assert error.details == {"tenant": "acme"}

    def test_is_raisable(self):
        with pytest.raises(AnalystError, match=r"\[E-4002\]"):
            raise AnalystError.from_code("E-4002", skill="x")

    def test_format_error(self):
        error = AnalystError.from_code("E-2001", integration="documents")
        text = format_error(error)
        assert text.splitlines()[0] == (
            "E-2001 (auth): No documents credentials are configured for this tenant."
        )
        assert text.splitlines()[1].startswith("Remediation: ")
        assert "\n" not in format_error(error, include_remediation=False)
