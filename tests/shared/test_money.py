"""Tests for cent-quantized money helpers."""

from decimal import Decimal

import pytest
from shared.money import ZERO, money_str, to_money


class TestToMoney:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2.99", Decimal("2.99")),
            (2.99, Decimal("2.99")),
            (3, Decimal("3.00")),
            (Decimal("1.005"), Decimal("1.01")),
            ("0.125", Decimal("0.13")),
        ],
    )
    def test_quantizes_half_up(self, value, expected):
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_is_zero(self, value):
        assert to_money(value) == ZERO

    def test_money_str(self):
        assert money_str(Decimal("26.2")) == "26.20"
