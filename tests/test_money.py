"""
Tests for amount parsing, bounds and rounding
"""

import pytest
from decimal import Decimal

from economy_ledger.errors import InvalidAmountError
from economy_ledger.money import MAX_AMOUNT_DIGITS, quantize_amount, to_decimal


class TestToDecimal:
    """Test conversion of strings and numbers"""

    def test_plain_numbers(self):
        assert to_decimal("12.5") == Decimal("12.5")
        assert to_decimal(3) == Decimal("3")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("1e3") == Decimal("1000")

    def test_comma_formats(self):
        assert to_decimal("1,5") == Decimal("1.5")
        assert to_decimal("1,250.5") == Decimal("1250.5")
        assert to_decimal("1,250") == Decimal("1250")
        assert to_decimal("1,000,000") == Decimal("1000000")

    def test_unit_names_are_dropped(self):
        assert to_decimal("5 gold") == Decimal("5")
        assert to_decimal("5 silver") == Decimal("5")
        assert to_decimal("12.5 gp") == Decimal("12.5")
        assert to_decimal("-3 sp") == Decimal("-3")

    def test_invalid_strings(self):
        for value in ("", "   ", "gold", "1.2.3 gp", "NaN", "Infinity"):
            with pytest.raises(InvalidAmountError):
                to_decimal(value)

    def test_rejects_booleans(self):
        with pytest.raises(InvalidAmountError):
            to_decimal(True)

    def test_rejects_oversized_amounts(self):
        limit = Decimal(10) ** MAX_AMOUNT_DIGITS
        assert to_decimal(limit - 1) == limit - 1
        for value in ("1e25", "1e1000000", str(limit), -limit):
            with pytest.raises(InvalidAmountError):
                to_decimal(value)


class TestQuantize:

    def test_rounds_half_up(self):
        assert quantize_amount(Decimal("1.23455"), 4) == Decimal("1.2346")
        assert quantize_amount(Decimal("2.5"), 0) == Decimal("3")

    def test_too_large_to_round(self):
        with pytest.raises(InvalidAmountError):
            quantize_amount(Decimal("1e30"), 4)
