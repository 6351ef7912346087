"""Fulfillment Executor — turns a 'paid' intent into minted artifacts.

Steps, all under the per-intent lock:
  1. guard:   records already exist for this payment → just activate
  2. select:  weighted pick from the pool (supply limits respected)
  3. resolve: intent handle → recipient account id (Identity Provider)
  4. mint:    one creation order, polled until the artifacts exist
  5. record:  MintedItemRecord per unit (UNIQUE payment_id, unit_index)
  6. activate: paid → activated
Any failure in 2-5 rolls back, leaves the intent at 'paid' and bumps
fulfillment_attempts; once attempts reach the limit the intent is
abandoned (paid → failed). If the intent leaves 'paid' while minting
runs (an operator abandoned it), nothing is recorded and the result is
CONFLICT.
"""
import logging
import random
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import FulfillmentOutcome, IntentStatus
from src.cm_common.errors import (
    ConfigurationError,
    DownstreamUnavailableError,
    IntentBusyError,
    IntentNotFoundError,
    PoolNotFoundError,
    RecipientUnresolvedError,
)
from src.cm_mint.application.schemas import FulfillmentResult
from src.cm_mint.domain.models import (
    CreationItem,
    MintedItemRecord,
    MintIntent,
    WeightedPool,
)
from src.cm_mint.domain.repository import (
    IdentityProviderProtocol,
    IntentLockProtocol,
    MintedItemRepositoryProtocol,
    MintIntentRepositoryProtocol,
    MintingServiceProtocol,
    PoolCatalogProtocol,
)
from src.cm_mint.domain.selection import select_entries
from src.cm_mint.domain.state_machine import is_fulfilled

logger = logging.getLogger(__name__)


class FulfillmentExecutor:
    def __init__(
        self,
        intents: MintIntentRepositoryProtocol,
        items: MintedItemRepositoryProtocol,
        catalog: PoolCatalogProtocol,
        identity: IdentityProviderProtocol,
        minting: MintingServiceProtocol,
        locks: IntentLockProtocol,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
        default_pool: str | None = None,
        default_collection_id: str | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._intents = intents
        self._items = items
        self._catalog = catalog
        self._identity = identity
        self._minting = minting
        self._locks = locks
        self._rng = rng
        self._clock = clock
        self._default_pool = default_pool or settings.DEFAULT_POOL
        self._default_collection_id = default_collection_id or settings.MINTING_COLLECTION_ID
        self._max_attempts = max_attempts or settings.FULFILLMENT_MAX_ATTEMPTS

    async def fulfill_if_due(self, db: AsyncSession, intent: MintIntent) -> FulfillmentResult:
        """Fulfil now unless activation_time is still in the future."""
        if intent.status != IntentStatus.PAID.value:
            return FulfillmentResult(intent.id, FulfillmentOutcome.SKIPPED.value, intent.status)
        if not intent.is_due(self._clock()):
            logger.info(
                "Intent %s scheduled for activation at %s",
                intent.id, intent.activation_time.isoformat() if intent.activation_time else None,
            )
            return FulfillmentResult(intent.id, FulfillmentOutcome.DEFERRED.value, intent.status)
        return await self.fulfill(db, intent.id, wait=False)

    async def fulfill(
        self, db: AsyncSession, intent_id: str, *, wait: bool = True
    ) -> FulfillmentResult:
        """Run fulfillment under the intent lock.

        With wait=False a lock held elsewhere yields IN_PROGRESS instead of
        queueing; the holder (or a later scheduler pass) finishes the job.
        """
        try:
            async with self._locks.hold(intent_id, wait=wait):
                return await self._fulfill_locked(db, intent_id)
        except IntentBusyError:
            if wait:
                raise
            logger.info("Intent %s is already being fulfilled elsewhere", intent_id)
            return FulfillmentResult(
                intent_id, FulfillmentOutcome.IN_PROGRESS.value, IntentStatus.PAID.value
            )

    async def _fulfill_locked(self, db: AsyncSession, intent_id: str) -> FulfillmentResult:
        # Fresh read under the lock: another worker may have finished already.
        intent = await self._intents.get_by_id(db, intent_id)
        if intent is None:
            raise IntentNotFoundError(intent_id)
        if is_fulfilled(intent.status):
            return FulfillmentResult(intent.id, FulfillmentOutcome.ALREADY_FULFILLED.value, intent.status)
        if intent.status != IntentStatus.PAID.value or intent.payment_id is None:
            return FulfillmentResult(intent.id, FulfillmentOutcome.SKIPPED.value, intent.status)

        # Step 1: guard
        existing = await self._items.list_by_payment(db, intent.payment_id)
        if existing:
            logger.info("Intent %s: %d items already recorded, activating", intent.id, len(existing))
            status = await self._activate(db, intent)
            return FulfillmentResult(intent.id, FulfillmentOutcome.ALREADY_FULFILLED.value, status)

        try:
            records = await self._produce(db, intent)
            written = await self._items.insert_many(db, records)
            activated = await self._intents.transition(
                db, intent.id, IntentStatus.PAID.value, IntentStatus.ACTIVATED.value
            )
            if activated is None:
                await db.rollback()
            else:
                await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.exception("Fulfillment of intent %s failed", intent.id)
            return await self._record_failure(db, intent, exc)

        if activated is None:
            return await self._conflict(db, intent, records)
        status = activated.status
        logger.info(
            "Intent %s fulfilled: %d item(s) minted to %s (%d new records)",
            intent.id, len(records), intent.handle, written,
        )
        return FulfillmentResult(intent.id, FulfillmentOutcome.ACTIVATED.value, status)

    def _pool_for(self, intent: MintIntent) -> WeightedPool:
        pool = self._catalog.get_pool(intent.pool)
        if pool is None:
            pool = self._catalog.get_pool(self._default_pool)
        if pool is None:
            raise PoolNotFoundError(intent.pool)
        return pool

    async def _produce(self, db: AsyncSession, intent: MintIntent) -> list[MintedItemRecord]:
        # Step 2: select
        pool = self._pool_for(intent)
        limited = [e.template_ref for e in pool.entries if e.supply_limit > 0]
        minted_counts = await self._items.count_by_template(db, limited)
        entries = select_entries(pool, intent.quantity, minted_counts, self._rng)

        # Step 3: resolve recipient
        account_id = await self._identity.resolve_handle(intent.handle)
        if not account_id:
            raise RecipientUnresolvedError(intent.handle)

        # Step 4: creation order
        collection_id = intent.collection_id or pool.collection_id or self._default_collection_id
        if not collection_id:
            raise ConfigurationError("no minting collection configured")
        artifacts = await self._minting.mint_items(
            collection_id, [CreationItem(entry=e, recipient_account_id=account_id) for e in entries]
        )
        if len(artifacts) < len(entries):
            raise DownstreamUnavailableError(
                "minting_service", f"expected {len(entries)} items, got {len(artifacts)}"
            )

        # Step 5: records (written by the caller in the same transaction as step 6)
        payment_id = intent.payment_id or ""
        return [
            MintedItemRecord(
                id=artifact.id,
                origin=artifact.origin,
                template_ref=entry.template_ref,
                collection_id=collection_id,
                recipient_account_id=account_id,
                recipient_handle=intent.handle,
                item_name=artifact.name or entry.name,
                rarity=artifact.rarity or entry.rarity,
                image_url=entry.image_url,
                multimedia_url=entry.multimedia_url,
                payment_id=payment_id,
                unit_index=index,
                metadata={
                    "source": "payment_fulfillment",
                    "intent_id": intent.id,
                    "pool": pool.name,
                    "attempt": intent.fulfillment_attempts + 1,
                },
            )
            for index, (entry, artifact) in enumerate(zip(entries, artifacts))
        ]

    async def _conflict(
        self, db: AsyncSession, intent: MintIntent, records: list[MintedItemRecord]
    ) -> FulfillmentResult:
        # Intent left 'paid' while minting ran; its records are not attached.
        current = await self._intents.get_by_id(db, intent.id)
        status = current.status if current else intent.status
        logger.error(
            "Intent %s moved to %s during minting; artifacts %s not recorded",
            intent.id, status, [r.id for r in records],
        )
        return FulfillmentResult(
            intent.id, FulfillmentOutcome.CONFLICT.value, status,
            f"intent moved to {status} during minting",
        )

    async def _activate(self, db: AsyncSession, intent: MintIntent) -> str:
        try:
            updated = await self._intents.transition(
                db, intent.id, IntentStatus.PAID.value, IntentStatus.ACTIVATED.value
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if updated is not None:
            return updated.status
        current = await self._intents.get_by_id(db, intent.id)
        return current.status if current else intent.status

    async def _record_failure(
        self, db: AsyncSession, intent: MintIntent, exc: Exception
    ) -> FulfillmentResult:
        error = getattr(exc, "message", None) or f"{type(exc).__name__}: {exc}"
        try:
            updated = await self._intents.record_failure(db, intent.id, error)
            outcome = FulfillmentOutcome.RETRY_PENDING
            if updated is not None and updated.fulfillment_attempts >= self._max_attempts:
                abandoned = await self._intents.transition(
                    db, intent.id, IntentStatus.PAID.value, IntentStatus.FAILED.value
                )
                if abandoned is not None:
                    updated = abandoned
                    outcome = FulfillmentOutcome.ABANDONED
                    logger.error(
                        "Intent %s abandoned after %d attempts: %s",
                        intent.id, self._max_attempts, error,
                    )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        status = updated.status if updated else intent.status
        return FulfillmentResult(intent.id, outcome.value, status, error)
