"""Destination Splitter: weighted payout allocation with exact conservation.

Destination string format: "dest:weight,dest:weight". A destination without a
weight counts as weight 1. Every allocation but the last is
round(total * weight / total_weight, 8dp); the last destination takes
the remainder, so sum(allocations) == total exactly.
Each share is capped at what is still unallocated; zero shares are dropped.
"""

from decimal import Decimal, InvalidOperation

from src.cm_common.amounts import quantize_amount
from src.cm_common.errors import ConfigurationError
from src.cm_payment.domain.models import Allocation, PaymentDestinationConfig


def parse_destinations(raw: str) -> list[tuple[str, Decimal]]:
    """Parse "a:0.6,b:0.4" into [("a", 0.6), ("b", 0.4)]."""
    weights: list[tuple[str, Decimal]] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        dest, sep, weight_str = part.partition(":")
        dest = dest.strip()
        if not dest:
            raise ConfigurationError(f"empty destination in '{part}'")
        if not sep:
            weights.append((dest, Decimal(1)))
            continue
        try:
            weight = Decimal(weight_str.strip())
        except InvalidOperation:
            raise ConfigurationError(f"invalid weight for {dest}: '{weight_str}'") from None
        if not weight.is_finite() or weight < 0:
            raise ConfigurationError(f"invalid weight for {dest}: '{weight_str}'")
        weights.append((dest, weight))
    return weights


def split_amount(
    weights: list[tuple[str, Decimal]], total: Decimal
) -> list[Allocation]:
    total = quantize_amount(total)
    total_weight = sum((w for _, w in weights), Decimal(0))
    if total_weight <= 0 or total <= 0:
        return []

    allocations: list[Allocation] = []
    remaining = total
    last = len(weights) - 1
    for index, (dest, weight) in enumerate(weights):
        if index == last:
            share = remaining
        else:
            # Half-up rounding can overshoot; never allocate past what is left.
            share = min(quantize_amount(total * weight / total_weight), remaining)
        remaining -= share
        if share > 0:
            allocations.append(Allocation(destination=dest, amount=share))
    return allocations


def allocate(config: PaymentDestinationConfig, total: Decimal) -> list[Allocation]:
    """Allocate `total` per config; falls back only to an explicit fallback destination.

    Raises ConfigurationError if nothing resolves to a positive amount.
    """
    allocations = split_amount(parse_destinations(config.destinations), total)
    if allocations:
        return allocations
    if config.fallback_destination and total > 0:
        return [Allocation(destination=config.fallback_destination, amount=quantize_amount(total))]
    raise ConfigurationError("no payment destinations resolve to a positive amount")
