"""Activation scheduler — re-invokes fulfillment for 'paid' intents that are due.

Covers both deferred activations (activation_time has passed) and
retries of fulfillments that failed earlier. Intents touched within the
grace period are skipped so the webhook's own immediate attempt is not raced,
and intents whose lock is held elsewhere come back as IN_PROGRESS rather
than stalling the pass.
"""
import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.cm_common.datetime_utils import utc_now
from src.cm_mint.application.executor import FulfillmentExecutor
from src.cm_mint.application.schemas import FulfillmentResult
from src.cm_mint.domain.repository import MintIntentRepositoryProtocol

logger = logging.getLogger(__name__)


class ActivationScheduler:
    def __init__(
        self,
        executor: FulfillmentExecutor,
        intents: MintIntentRepositoryProtocol,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: float | None = None,
        batch_size: int | None = None,
        grace_seconds: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._executor = executor
        self._intents = intents
        self._session_factory = session_factory
        self._interval = interval_seconds or settings.SCHEDULER_INTERVAL_SECONDS
        self._batch_size = batch_size or settings.SCHEDULER_BATCH_SIZE
        self._grace = timedelta(
            seconds=settings.FULFILLMENT_RETRY_GRACE_SECONDS if grace_seconds is None else grace_seconds
        )
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    async def run_once(self) -> list[FulfillmentResult]:
        now = self._clock()
        results: list[FulfillmentResult] = []
        async with self._session_factory() as db:
            due = await self._intents.list_due_paid(db, now, now - self._grace, self._batch_size)
            # Release the read snapshot before long-running fulfillment calls.
            await db.commit()
            for intent in due:
                try:
                    results.append(await self._executor.fulfill(db, intent.id, wait=False))
                except Exception:
                    logger.exception("Scheduled fulfillment of %s raised", intent.id)
        if results:
            logger.info("Scheduler pass: %d intent(s) processed", len(results))
        return results

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Scheduler pass failed")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="activation-scheduler")
            logger.info("Activation scheduler started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
