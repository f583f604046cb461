"""Tests for amount and name scanning."""

import pytest

from erp_analyst.validation.numbers import (
    extract_amounts,
    find_generic_names,
    has_numeric_data,
    mentions,
    parse_number,
)


class TestParseNumber:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("5.200.000", 5200000.0),
            ("128.000", 128000.0),
            ("1.234,56", 1234.56),
            ("1,234.56", 1234.56),
            ("12,5", 12.5),
            ("3.75", 3.75),
            ("42", 42.0),
        ],
    )
    def test_separators(self, raw, expected):
        assert parse_number(raw) == expected


class TestExtractAmounts:
    """Tests for extract_amounts()."""

    def test_currency_amounts(self):
        assert extract_amounts("Sales were $ 5.200.000 and US$ 1,234.56") == [5200000.0, 1234.56]

    def test_suffix_multipliers(self):
        assert extract_amounts("about 5k, then 2,5 millones") == [5000.0, 2500000.0]

    def test_years_and_percentages_skipped(self):
        assert extract_amounts("In 2025 we grew 12% to $ 80.000") == [80000.0]

    def test_year_with_currency_is_an_amount(self):
        assert extract_amounts("a ticket of $2000") == [2000.0]

    def test_zero_ignored(self):
        assert extract_amounts("$ 0") == []


class TestHasNumericData:

    def test_currency_counts_even_when_small(self):
        assert has_numeric_data("it cost $ 5")

    def test_small_plain_numbers_do_not(self):
        assert not has_numeric_data("we have 3 new customers")


class TestFindGenericNames:
    """Tests for placeholder name detection."""

    def test_letter_placeholders(self):
        assert find_generic_names("Cliente A bought more than customer B") == ["Cliente A", "customer B"]

    def test_known_fake_names_ignore_accents(self):
        assert find_generic_names("Top seller: Juan Pérez") == ["Juan Perez"]

    def test_placeholder_companies(self):
        assert find_generic_names("ABC S.A. and Empresa Ejemplo") == ["ABC S.A.", "Empresa Ejemplo"]

    def test_real_names_pass(self):
        assert find_generic_names("Acme Corp and Distribuidora del Sur S.A. lead the ranking") == []

    def test_pronoun_after_entity_word(self):
        assert find_generic_names("The supplier I trust most is Steel Inc, unlike supplier J") == ["supplier J"]


class TestMentions:

    def test_case_and_accent_insensitive(self):
        assert mentions("la distribuidora del sur compró", "Distribuidora del Sur S.A.")
        assert mentions("ventas de PANADERÍA LOPEZ", "Panaderia López")

    def test_absent(self):
        assert not mentions("nothing here", "Acme Corp")
