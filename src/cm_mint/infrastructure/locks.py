"""Per-intent mutual exclusion for fulfillment.

LocalIntentLocks serialises coroutines within one process (same
defaultdict(asyncio.Lock) pattern as per-key engine locks).
RedisIntentLocks adds a Redis lock on top so that separate workers
cannot run steps 1-6 of fulfillment for the same intent concurrently.
The Redis lock has a short TTL and is renewed by a background task for
as long as the holder is inside the block, so a slow minting order never
outlives it. The minted_items unique constraint still backs both.

hold(..., wait=False) raises IntentBusyError straight away instead of
queueing behind the current holder.
"""

import asyncio
import contextlib
import logging
from collections import defaultdict
from collections.abc import AsyncIterator

import redis.asyncio as aioredis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError

from config.settings import settings
from src.cm_common.errors import IntentBusyError
from src.cm_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class LocalIntentLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = defaultdict(int)

    @contextlib.asynccontextmanager
    async def hold(self, intent_id: str, wait: bool = True) -> AsyncIterator[None]:
        if not wait and self._holders.get(intent_id):
            raise IntentBusyError(intent_id)
        lock = self._locks.setdefault(intent_id, asyncio.Lock())
        self._holders[intent_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[intent_id] -= 1
            if self._holders[intent_id] == 0:
                # No holder or waiter left; drop so the map stays bounded.
                del self._holders[intent_id]
                del self._locks[intent_id]


class RedisIntentLocks:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        timeout_seconds: float | None = None,
        wait_seconds: float | None = None,
    ) -> None:
        self._redis = redis
        self._timeout = timeout_seconds or settings.INTENT_LOCK_TIMEOUT_SECONDS
        # A blocking caller may queue behind one whole fulfillment.
        self._wait = wait_seconds or settings.fulfillment_budget_seconds + self._timeout
        self._local = LocalIntentLocks()

    @contextlib.asynccontextmanager
    async def hold(self, intent_id: str, wait: bool = True) -> AsyncIterator[None]:
        redis = self._redis or await get_redis()
        async with self._local.hold(intent_id, wait=wait):
            lock = redis.lock(f"lock:mint_intent:{intent_id}", timeout=self._timeout)
            acquired = await lock.acquire(
                blocking=wait, blocking_timeout=self._wait if wait else None
            )
            if not acquired:
                raise IntentBusyError(intent_id)
            renewer = asyncio.create_task(self._renew(lock, intent_id))
            try:
                yield
            finally:
                renewer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await renewer
                try:
                    await lock.release()
                except (LockError, RedisError):
                    # The TTL frees it anyway.
                    logger.warning("Could not release lock for intent %s", intent_id)

    async def _renew(self, lock: Lock, intent_id: str) -> None:
        while True:
            await asyncio.sleep(self._timeout / 3)
            try:
                await lock.reacquire()
            except (LockError, RedisError):
                logger.error("Could not renew lock for intent %s", intent_id)
                return
