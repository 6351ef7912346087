"""Weighted random selection from a pool, respecting supply limits.

The random source is injected: production passes SystemRandom-backed
defaults, tests pass a seeded random.Random.
"""

import random

from src.cm_common.errors import PoolSoldOutError
from src.cm_mint.domain.models import WeightedPool, WeightedPoolEntry

_system_random = random.SystemRandom()


def _remaining(entry: WeightedPoolEntry, minted: dict[str, int], picked: dict[str, int]) -> bool:
    if entry.supply_limit == 0:
        return True
    used = minted.get(entry.template_ref, 0) + picked.get(entry.template_ref, 0)
    return used < entry.supply_limit


def pick_one(entries: list[WeightedPoolEntry], rng: random.Random) -> WeightedPoolEntry:
    """Pick proportionally to weight; uniform if every weight is zero."""
    weights = [max(e.weight, 0) for e in entries]
    if sum(weights) <= 0:
        return rng.choice(entries)
    return rng.choices(entries, weights=weights, k=1)[0]


def select_entries(
    pool: WeightedPool,
    quantity: int,
    minted_counts: dict[str, int],
    rng: random.Random | None = None,
) -> list[WeightedPoolEntry]:
    """Select `quantity` entries; raises PoolSoldOutError if supply runs out."""
    rng = rng or _system_random
    picked: dict[str, int] = {}
    selected: list[WeightedPoolEntry] = []
    for _ in range(quantity):
        available = [e for e in pool.entries if _remaining(e, minted_counts, picked)]
        if not available:
            raise PoolSoldOutError(pool.name)
        entry = pick_one(available, rng)
        picked[entry.template_ref] = picked.get(entry.template_ref, 0) + 1
        selected.append(entry)
    return selected
