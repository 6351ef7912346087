"""Tests for the destination splitter: weighted payout with exact conservation."""

import random
from decimal import Decimal

import pytest

from src.cm_common.errors import ConfigurationError
from src.cm_payment.domain.models import PaymentDestinationConfig
from src.cm_payment.domain.splitter import allocate, parse_destinations, split_amount


class TestParseDestinations:
    def test_weighted(self) -> None:
        assert parse_destinations("a:0.6,b:0.4") == [("a", Decimal("0.6")), ("b", Decimal("0.4"))]

    def test_missing_weight_defaults_to_one(self) -> None:
        assert parse_destinations("a, b:2") == [("a", Decimal(1)), ("b", Decimal(2))]

    def test_blank_parts_ignored(self) -> None:
        assert parse_destinations(" , a:1 ,") == [("a", Decimal(1))]

    @pytest.mark.parametrize("raw", ["a:x", "a:-1", ":0.5", "a:inf"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(ConfigurationError):
            parse_destinations(raw)


class TestSplitAmount:
    def test_scenario_a(self) -> None:
        """1.00 over a:0.6,b:0.4 gives a=0.60, b=0.40."""
        result = split_amount(parse_destinations("a:0.6,b:0.4"), Decimal("1.00"))
        assert [(a.destination, a.amount) for a in result] == [
            ("a", Decimal("0.60000000")),
            ("b", Decimal("0.40000000")),
        ]

    def test_last_takes_remainder(self) -> None:
        result = split_amount([("a", Decimal(1)), ("b", Decimal(1)), ("c", Decimal(1))], Decimal("1"))
        assert [a.amount for a in result] == [
            Decimal("0.33333333"), Decimal("0.33333333"), Decimal("0.33333334"),
        ]

    def test_zero_allocations_dropped(self) -> None:
        result = split_amount([("a", Decimal(0)), ("b", Decimal(1))], Decimal("0.5"))
        assert [a.destination for a in result] == ["b"]

    def test_zero_total(self) -> None:
        assert split_amount([("a", Decimal(1))], Decimal(0)) == []

    def test_conservation_random(self) -> None:
        rng = random.Random(42)
        for _ in range(500):
            n = rng.randint(1, 7)
            weights = [(f"d{i}", Decimal(rng.randint(0, 1000)) / Decimal(rng.randint(1, 97))) for i in range(n)]
            total = Decimal(rng.randint(1, 10**10)).scaleb(-8)
            result = split_amount(weights, total)
            if sum(w for _, w in weights) == 0:
                assert result == []
                continue
            assert sum(a.amount for a in result) == total
            assert all(a.amount > 0 for a in result)


class TestAllocate:
    def test_uses_destinations(self) -> None:
        config = PaymentDestinationConfig(destinations="a:3,b:1", currency="BSV")
        result = allocate(config, Decimal("0.88"))
        assert sum(a.amount for a in result) == Decimal("0.88")

    def test_falls_back_to_explicit_destination(self) -> None:
        config = PaymentDestinationConfig(destinations="", currency="BSV", fallback_destination="ops")
        result = allocate(config, Decimal("0.88"))
        assert [(a.destination, a.amount) for a in result] == [("ops", Decimal("0.88000000"))]

    def test_nothing_resolves_raises(self) -> None:
        config = PaymentDestinationConfig(destinations="a:0", currency="BSV")
        with pytest.raises(ConfigurationError):
            allocate(config, Decimal("0.88"))
