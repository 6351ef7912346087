"""Tests for cm_common.amounts — 8 dp Decimal arithmetic."""

from decimal import Decimal

from src.cm_common.amounts import MAX_AMOUNT, amount_to_display, quantize_amount


class TestQuantize:
    def test_rounds_half_up(self) -> None:
        assert quantize_amount(Decimal("0.000000005")) == Decimal("0.00000001")

    def test_keeps_eight_places(self) -> None:
        assert str(quantize_amount(Decimal("1"))) == "1.00000000"

    def test_largest_storable_amount_is_exact(self) -> None:
        assert quantize_amount(MAX_AMOUNT) == MAX_AMOUNT


def test_amount_to_display() -> None:
    assert amount_to_display(Decimal("1.5"), "BSV") == "1.50000000 BSV"
