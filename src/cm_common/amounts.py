"""Decimal arithmetic for on-chain denominated amounts.

Gateway amounts carry 8 decimal places (satoshi precision). All amounts
are Decimal, never float; every stored or transmitted value passes
through quantize_amount first.
"""

from decimal import ROUND_HALF_UP, Decimal

AMOUNT_PLACES = 8
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)  # 0.00000001
# Largest value a NUMERIC(18, 8) column holds.
MAX_AMOUNT = Decimal("9999999999.99999999")


def quantize_amount(value: Decimal) -> Decimal:
    """Round to 8 decimal places, half away from zero."""
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def amount_to_display(amount: Decimal, currency: str) -> str:
    """1.5 BSV -> '1.50000000 BSV'."""
    return f"{quantize_amount(amount)} {currency}"
