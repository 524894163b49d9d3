"""Unit tests for line item and totals arithmetic"""

from decimal import Decimal

import pytest

from quoteflow.domain.documents.models import LineItem, Totals
from quoteflow.domain.documents.totals import (
    compare_totals,
    compute_line_total,
    compute_totals,
    format_amount,
    minor_unit,
    price_items,
    round_money,
)


def item(quantity, unit_price, discount="0", tax="0") -> LineItem:
    return LineItem(
        description="line",
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        discount=Decimal(discount),
        tax=Decimal(tax),
    )


class TestLineTotals:
    """Test per-line arithmetic"""

    def test_plain_line(self):
        assert compute_line_total(item("2", "100"), "SAR") == Decimal("200.00")

    def test_discount_is_a_fraction(self):
        """Test 0.1 means 10% off the gross amount"""
        assert compute_line_total(item("3", "100", discount="0.1"), "SAR") == Decimal("270.00")

    def test_tax_is_added_after_discount(self):
        assert compute_line_total(item("1", "100", discount="0.5", tax="7.5"), "SAR") == Decimal("57.50")

    def test_rounds_half_up(self):
        """Test 0.125 rounds to 0.13, not banker's 0.12"""
        assert compute_line_total(item("1", "0.125"), "USD") == Decimal("0.13")

    @pytest.mark.parametrize("currency,expected", [
        ("SAR", Decimal("0.01")),
        ("KWD", Decimal("0.001")),
        ("JPY", Decimal("1")),
        ("usd", Decimal("0.01")),
        (None, Decimal("0.01")),
    ])
    def test_minor_unit_per_currency(self, currency, expected):
        assert minor_unit(currency) == expected

    def test_zero_decimal_currency(self):
        assert round_money(Decimal("1234.5"), "JPY") == Decimal("1235")


class TestComputeTotals:
    """Test aggregate totals"""

    def test_two_lines(self):
        """Test (2 × 100) + (1 × 50) = 250"""
        totals = compute_totals([item("2", "100"), item("1", "50")], "SAR")

        assert totals.subtotal == Decimal("250.00")
        assert totals.discount == Decimal("0.00")
        assert totals.tax == Decimal("0.00")
        assert totals.total == Decimal("250.00")

    def test_discount_and_tax_aggregated(self):
        totals = compute_totals([item("2", "100", discount="0.1", tax="30"), item("1", "50")], "SAR")

        assert totals.subtotal == Decimal("250.00")
        assert totals.discount == Decimal("20.00")
        assert totals.tax == Decimal("30.00")
        assert totals.total == Decimal("260.00")

    def test_total_is_sum_of_rounded_lines(self):
        """Test the total matches what the rendered rows add up to"""
        lines = [item("1", "0.005"), item("1", "0.005")]
        totals = compute_totals(lines, "SAR")

        assert totals.total == Decimal("0.02")
        assert totals.total == sum(compute_line_total(line, "SAR") for line in lines)

    def test_empty_items(self):
        totals = compute_totals([], "SAR")
        assert totals.total == Decimal("0.00")
        assert totals.subtotal == Decimal("0.00")

    def test_price_items_sets_line_totals(self):
        """Test price_items returns copies with totals set"""
        original = [item("2", "100"), item("1", "50")]
        priced, totals = price_items(original, "SAR")

        assert [p.total for p in priced] == [Decimal("200.00"), Decimal("50.00")]
        assert all(o.total is None for o in original)
        assert totals.total == Decimal("250.00")


class TestCompareTotals:
    """Test mismatch detection between computed and persisted totals"""

    def test_matching_totals(self):
        computed = compute_totals([item("2", "100"), item("1", "50")], "SAR")
        persisted = Totals(subtotal=Decimal("250"), discount=Decimal("0"), tax=Decimal("0"), total=Decimal("250"))

        assert compare_totals(computed, persisted, "SAR") == []

    def test_persisted_total_drifted(self):
        """Test persisted 260 against computed 250 is reported"""
        computed = compute_totals([item("2", "100"), item("1", "50")], "SAR")
        persisted = Totals(subtotal=Decimal("250"), discount=Decimal("0"), tax=Decimal("0"), total=Decimal("260"))

        mismatches = compare_totals(computed, persisted, "SAR")

        assert len(mismatches) == 1
        mismatch = mismatches[0]
        assert mismatch.field == "totals.total"
        assert mismatch.computed == Decimal("250.00")
        assert mismatch.persisted == Decimal("260")
        assert mismatch.to_dict() == {
            "field": "totals.total",
            "computed": "250.00",
            "persisted": "260",
            "message": "totals.total: computed 250.00 but persisted 260",
        }


class TestFormatAmount:
    """Test display formatting of amounts"""

    def test_thousands_separator(self):
        assert format_amount(Decimal("1234.5"), "SAR") == "1,234.50"

    def test_three_decimal_currency(self):
        assert format_amount(Decimal("12.3456"), "KWD") == "12.346"

    def test_zero_decimal_currency(self):
        assert format_amount(Decimal("1500"), "JPY") == "1,500"

    def test_missing_value(self):
        assert format_amount(None, "SAR") == ""
