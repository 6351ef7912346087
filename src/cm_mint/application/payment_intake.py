"""Payment intake — the webhook pipeline after authentication.

ledger append + pending_payment → paid commit together; fulfillment
runs afterwards in its own transactions. Once the payment is durably
ledgered the webhook is acknowledged, whatever fulfillment does:
fulfillment problems must not make the gateway redeliver.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import IntentStatus
from src.cm_mint.application.executor import FulfillmentExecutor
from src.cm_mint.application.reconciler import IntentReconciler
from src.cm_mint.application.schemas import WebhookAck
from src.cm_payment.domain.models import PaymentNotification
from src.cm_payment.domain.repository import PaymentLedgerProtocol

logger = logging.getLogger(__name__)


class PaymentIntakeService:
    def __init__(
        self,
        ledger: PaymentLedgerProtocol,
        reconciler: IntentReconciler,
        executor: FulfillmentExecutor,
    ) -> None:
        self._ledger = ledger
        self._reconciler = reconciler
        self._executor = executor

    async def process(self, db: AsyncSession, notification: PaymentNotification) -> WebhookAck:
        try:
            ledgered = await self._ledger.append(db, notification)
            outcome = await self._reconciler.confirm_payment(db, ledgered.record)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        ack = WebhookAck(payment_id=ledgered.record.id, duplicate=ledgered.duplicate)
        intent = outcome.intent
        if intent is None:
            return ack
        ack.intent_id = intent.id
        ack.intent_status = intent.status

        if intent.status == IntentStatus.PAID.value:
            try:
                result = await self._executor.fulfill_if_due(db, intent)
                ack.intent_status = result.status
            except Exception:
                # Payment is durable; the scheduler retries from 'paid'.
                logger.exception("Fulfillment for intent %s deferred to retry", intent.id)
        return ack
