"""Intent Reconciler — owns every MintIntent status transition except
those taken inside fulfillment.

pending_payment → paid is applied only for 'completed' payments, and
only once: the compare-and-set update turns a repeat delivery into a
DuplicateIgnoredError, which is collapsed here rather than surfaced.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import IntentStatus, PaymentStatus
from src.cm_common.errors import (
    DuplicateIgnoredError,
    ForbiddenError,
    IntentNotFoundError,
    InvalidTransitionError,
)
from src.cm_mint.application.schemas import ReconcileOutcome
from src.cm_mint.domain.models import MintIntent
from src.cm_mint.domain.repository import IntentLockProtocol, MintIntentRepositoryProtocol
from src.cm_mint.domain.state_machine import check_transition
from src.cm_payment.domain.models import PaymentRecord

logger = logging.getLogger(__name__)


class IntentReconciler:
    def __init__(
        self,
        intents: MintIntentRepositoryProtocol,
        locks: IntentLockProtocol | None = None,
    ) -> None:
        self._intents = intents
        self._locks = locks

    async def confirm_payment(
        self, db: AsyncSession, record: PaymentRecord
    ) -> ReconcileOutcome:
        """Runs inside the caller's transaction (same one as the ledger write)."""
        intent = await self._intents.get_by_external_request_id(db, record.external_request_id)
        if intent is None:
            logger.info("No intent for request %s; payment ledgered only", record.external_request_id)
            return ReconcileOutcome(intent=None, transitioned=False)

        if record.status != PaymentStatus.COMPLETED.value:
            logger.warning("Payment %s has status %s; intent %s unchanged", record.id, record.status, intent.id)
            return ReconcileOutcome(intent=intent, transitioned=False)

        try:
            paid = await self._mark_paid(db, intent, record)
        except DuplicateIgnoredError:
            logger.info("Intent %s already %s; payment %s not re-applied", intent.id, intent.status, record.id)
            current = await self._intents.get_by_id(db, intent.id)
            return ReconcileOutcome(intent=current or intent, transitioned=False)

        logger.info("Intent %s: pending_payment → paid (tx=%s)", paid.id, record.transaction_id)
        return ReconcileOutcome(intent=paid, transitioned=True)

    async def _mark_paid(
        self, db: AsyncSession, intent: MintIntent, record: PaymentRecord
    ) -> MintIntent:
        if intent.status != IntentStatus.PENDING_PAYMENT.value:
            raise DuplicateIgnoredError(record.id)
        updated = await self._intents.mark_paid(db, intent.id, record.transaction_id, record.paid_at)
        if updated is None:
            # Lost the race to a concurrent delivery.
            raise DuplicateIgnoredError(record.id)
        return updated

    async def acknowledge(
        self, db: AsyncSession, intent_id: str, account_id: str
    ) -> MintIntent:
        """activated → completed, once the requester has seen the result."""
        intent = await self._intents.get_by_id(db, intent_id)
        if intent is None:
            raise IntentNotFoundError(intent_id)
        if intent.account_id != account_id:
            raise ForbiddenError("intent belongs to another account")
        if intent.status == IntentStatus.COMPLETED.value:
            return intent
        return await self._apply(db, intent, IntentStatus.COMPLETED)

    async def abandon(self, db: AsyncSession, intent_id: str) -> MintIntent:
        """paid → failed: stop retrying fulfillment for this intent.

        Takes the fulfillment lock, so an in-flight attempt finishes (or
        fails) before the intent is abandoned.
        """
        if self._locks is None:
            return await self._abandon(db, intent_id)
        async with self._locks.hold(intent_id):
            return await self._abandon(db, intent_id)

    async def _abandon(self, db: AsyncSession, intent_id: str) -> MintIntent:
        intent = await self._intents.get_by_id(db, intent_id)
        if intent is None:
            raise IntentNotFoundError(intent_id)
        return await self._apply(db, intent, IntentStatus.FAILED)

    async def _apply(
        self, db: AsyncSession, intent: MintIntent, target: IntentStatus
    ) -> MintIntent:
        check_transition(intent.id, intent.status, target.value)
        try:
            updated = await self._intents.transition(db, intent.id, intent.status, target.value)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if updated is None:
            # Status moved under us between the read and the compare-and-set.
            current = await self._intents.get_by_id(db, intent.id)
            raise InvalidTransitionError(
                intent.id, current.status if current else "missing", target.value
            )
        logger.info("Intent %s: %s → %s", intent.id, intent.status, target.value)
        return updated
