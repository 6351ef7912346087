"""Tests for weighted pool selection with an injected random source."""

import random
from collections import Counter

import pytest

from src.cm_common.errors import PoolSoldOutError
from src.cm_mint.domain.models import WeightedPool, WeightedPoolEntry
from src.cm_mint.domain.selection import pick_one, select_entries


def _entry(ref: str, weight: int, supply_limit: int = 0) -> WeightedPoolEntry:
    return WeightedPoolEntry(
        template_ref=ref, name=ref.upper(), rarity=None, weight=weight,
        image_url=None, supply_limit=supply_limit,
    )


class TestPickOne:
    def test_same_seed_same_choice(self) -> None:
        entries = [_entry("a", 1), _entry("b", 1), _entry("c", 1)]
        first = [pick_one(entries, random.Random(7)).template_ref for _ in range(5)]
        second = [pick_one(entries, random.Random(7)).template_ref for _ in range(5)]
        assert first == second

    def test_distribution_follows_weights(self) -> None:
        entries = [_entry("common", 90), _entry("rare", 10)]
        rng = random.Random(1234)
        counts = Counter(pick_one(entries, rng).template_ref for _ in range(10_000))
        assert 0.87 < counts["common"] / 10_000 < 0.93

    def test_zero_weight_never_picked(self) -> None:
        entries = [_entry("a", 1), _entry("never", 0)]
        rng = random.Random(3)
        assert all(pick_one(entries, rng).template_ref == "a" for _ in range(500))

    def test_all_zero_weights_uniform(self) -> None:
        entries = [_entry("a", 0), _entry("b", 0)]
        rng = random.Random(5)
        counts = Counter(pick_one(entries, rng).template_ref for _ in range(2_000))
        assert counts["a"] > 800 and counts["b"] > 800


class TestSelectEntries:
    def test_quantity(self) -> None:
        pool = WeightedPool(name="p", entries=[_entry("a", 1)])
        assert len(select_entries(pool, 3, {}, random.Random(0))) == 3

    def test_exhausted_entries_excluded(self) -> None:
        pool = WeightedPool(name="p", entries=[_entry("a", 99, supply_limit=5), _entry("b", 1)])
        picked = select_entries(pool, 4, {"a": 5}, random.Random(0))
        assert {e.template_ref for e in picked} == {"b"}

    def test_counts_units_picked_in_same_call(self) -> None:
        pool = WeightedPool(name="p", entries=[_entry("a", 1, supply_limit=2), _entry("b", 1, supply_limit=1)])
        picked = select_entries(pool, 3, {}, random.Random(0))
        assert Counter(e.template_ref for e in picked) == {"a": 2, "b": 1}

    def test_sold_out(self) -> None:
        pool = WeightedPool(name="p", entries=[_entry("a", 1, supply_limit=1)])
        with pytest.raises(PoolSoldOutError):
            select_entries(pool, 2, {}, random.Random(0))
