"""Шаг ставки и денежные значения"""
from decimal import Decimal

import pytest

from services.errors import RejectionReason, ValidationError
from services.increments import (
    calculate_minimum_increment,
    format_money,
    increment_for,
    minimum_next_bid,
    to_amount,
)


# ============================================================
# TestIncrementLadder: лестница шагов
# ============================================================


class TestIncrementLadder:
    """Границы диапазонов включаются в верхний диапазон"""

    @pytest.mark.parametrize("amount, expected", [
        ("0", "5"),
        ("99.99", "5"),
        ("100", "10"),
        ("499.99", "10"),
        ("500", "25"),
        ("999.99", "25"),
        ("1000", "50"),
        ("4999.99", "50"),
        ("5000", "100"),
        ("9999.99", "100"),
        ("10000", "250"),
        ("250000", "250"),
    ])
    def test_boundaries(self, amount: str, expected: str) -> None:
        assert calculate_minimum_increment(Decimal(amount)) == Decimal(expected)

    def test_none_counts_as_zero(self) -> None:
        assert calculate_minimum_increment(None) == Decimal("5")

    def test_lot_increment_overrides_ladder(self) -> None:
        assert increment_for(Decimal("105"), Decimal("20")) == Decimal("20.00")
        assert increment_for(Decimal("105"), None) == Decimal("10")

    def test_minimum_next_bid(self) -> None:
        assert minimum_next_bid(Decimal("105")) == Decimal("115.00")
        assert minimum_next_bid(Decimal("95")) == Decimal("100.00")
        assert minimum_next_bid(Decimal("105"), Decimal("1")) == Decimal("106.00")


# ============================================================
# TestAmounts: разбор сумм
# ============================================================


class TestAmounts:

    def test_normalizes_to_cents(self) -> None:
        assert to_amount("10.1") == Decimal("10.10")
        assert to_amount("10.500") == Decimal("10.50")
        assert to_amount(7) == Decimal("7.00")
        assert to_amount(Decimal("1.5")) == Decimal("1.50")

    @pytest.mark.parametrize("value", [
        "abc", "", None, "NaN", "Infinity", True, [1],
        "1e30", "1e-30", "10000000000", "-10000000000", "104.995", "10.006",
    ])
    def test_rejects_non_numbers(self, value) -> None:
        with pytest.raises(ValidationError) as exc:
            to_amount(value)
        assert exc.value.reason == RejectionReason.INVALID_AMOUNT

    def test_format_money(self) -> None:
        assert format_money(Decimal("115")) == "$115.00"
        assert format_money("1234.5") == "$1,234.50"

    def test_largest_amount_that_fits_column(self) -> None:
        assert to_amount("9999999999.99") == Decimal("9999999999.99")
