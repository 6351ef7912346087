"""Tests for per-intent locks."""

import asyncio

import pytest

from fakes import FakeLockRedis
from src.cm_common.errors import IntentBusyError
from src.cm_mint.infrastructure.locks import LocalIntentLocks, RedisIntentLocks


class TestLocalIntentLocks:
    async def test_same_intent_serialised(self) -> None:
        locks = LocalIntentLocks()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("mi_1"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_different_intents_overlap(self) -> None:
        locks = LocalIntentLocks()
        inside = 0
        peak = 0

        async def worker(intent_id: str) -> None:
            nonlocal inside, peak
            async with locks.hold(intent_id):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(worker("mi_1"), worker("mi_2"))
        assert peak == 2

    async def test_released_locks_are_dropped(self) -> None:
        locks = LocalIntentLocks()
        await asyncio.gather(*(self._hold(locks) for _ in range(3)))
        assert locks._locks == {}
        assert dict(locks._holders) == {}

    async def test_dropped_after_exception(self) -> None:
        locks = LocalIntentLocks()
        with pytest.raises(ValueError):
            async with locks.hold("mi_1"):
                raise ValueError("boom")
        assert locks._locks == {}

    async def test_no_wait_while_held(self) -> None:
        locks = LocalIntentLocks()
        async with locks.hold("mi_1"):
            with pytest.raises(IntentBusyError):
                async with locks.hold("mi_1", wait=False):
                    pass
            async with locks.hold("mi_2", wait=False):
                pass
        async with locks.hold("mi_1", wait=False):
            pass

    @staticmethod
    async def _hold(locks: LocalIntentLocks) -> None:
        async with locks.hold("mi_1"):
            await asyncio.sleep(0)


class TestRedisIntentLocks:
    async def test_takes_named_redis_lock(self) -> None:
        redis = FakeLockRedis()

        async with RedisIntentLocks(redis=redis, timeout_seconds=30, wait_seconds=5).hold("mi_1"):
            assert redis.held == {"lock:mint_intent:mi_1"}

        assert redis.held == set()
        assert redis.locks[0].timeout == 30

    async def test_renewed_while_held_past_ttl(self) -> None:
        redis = FakeLockRedis()

        async with RedisIntentLocks(redis=redis, timeout_seconds=0.03, wait_seconds=1).hold("mi_1"):
            await asyncio.sleep(0.1)

        assert redis.locks[0].renewals >= 2

    async def test_renewal_stops_on_release(self) -> None:
        redis = FakeLockRedis()
        async with RedisIntentLocks(redis=redis, timeout_seconds=0.03, wait_seconds=1).hold("mi_1"):
            pass
        await asyncio.sleep(0.05)
        assert redis.locks[0].renewals == 0

    async def test_no_wait_when_held_by_another_worker(self) -> None:
        redis = FakeLockRedis()
        redis.held.add("lock:mint_intent:mi_1")
        locks = RedisIntentLocks(redis=redis, timeout_seconds=30, wait_seconds=5)

        with pytest.raises(IntentBusyError):
            async with locks.hold("mi_1", wait=False):
                pass

        assert redis.held == {"lock:mint_intent:mi_1"}

    async def test_wait_times_out_as_busy(self) -> None:
        redis = FakeLockRedis()
        redis.held.add("lock:mint_intent:mi_1")

        with pytest.raises(IntentBusyError):
            async with RedisIntentLocks(redis=redis, timeout_seconds=30, wait_seconds=0.02).hold("mi_1"):
                pass

    async def test_expired_lock_on_release_is_not_an_error(self) -> None:
        redis = FakeLockRedis(fail_release=True)
        ran = False

        async with RedisIntentLocks(redis=redis, timeout_seconds=30, wait_seconds=5).hold("mi_1"):
            ran = True

        assert ran
