"""PaymentLedger: append-only, idempotent store of payment notifications.

The composite primary key makes the insert single-writer-wins: of two
concurrent deliveries of the same notification exactly one INSERT
returns a row, the other falls through to reading the winner's record.
"""
import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_payment.domain.models import LedgerResult, PaymentNotification, PaymentRecord

logger = logging.getLogger(__name__)

_INSERT_PAYMENT_SQL = text("""
    INSERT INTO payment_records
        (id, external_request_id, transaction_id, amount, currency,
         payer, paid_at, status, payload)
    VALUES (:id, :external_request_id, :transaction_id, :amount, :currency,
            :payer, :paid_at, :status, CAST(:payload AS JSONB))
    ON CONFLICT (id) DO NOTHING
    RETURNING id, external_request_id, transaction_id, amount, currency,
              payer, paid_at, status, payload, created_at
""")

_GET_PAYMENT_SQL = text("""
    SELECT id, external_request_id, transaction_id, amount, currency,
           payer, paid_at, status, payload, created_at
    FROM payment_records
    WHERE id = :id
""")


def _row_to_record(row: Any) -> PaymentRecord:
    payload = row.payload
    if isinstance(payload, str):
        payload = json.loads(payload)
    return PaymentRecord(
        id=row.id,
        external_request_id=row.external_request_id,
        transaction_id=row.transaction_id,
        amount=row.amount,
        currency=row.currency,
        payer=row.payer,
        paid_at=row.paid_at,
        status=row.status,
        payload=payload or {},
        created_at=row.created_at,
    )


class PaymentLedger:
    """Concrete PaymentLedgerProtocol; runs inside the caller's transaction."""

    async def append(
        self, db: AsyncSession, notification: PaymentNotification
    ) -> LedgerResult:
        result = await db.execute(
            _INSERT_PAYMENT_SQL,
            {
                "id": notification.record_id,
                "external_request_id": notification.external_request_id,
                "transaction_id": notification.transaction_id,
                "amount": notification.amount,
                "currency": notification.currency,
                "payer": notification.payer,
                "paid_at": notification.paid_at,
                "status": notification.status,
                "payload": json.dumps(notification.payload, default=str),
            },
        )
        row = result.fetchone()
        if row is not None:
            return LedgerResult(record=_row_to_record(row), duplicate=False)

        existing = await self.get(db, notification.record_id)
        if existing is None:
            # Conflicting row vanished: the ledger is append-only, so this is corruption.
            raise RuntimeError(f"payment record {notification.record_id} conflicted but is missing")
        logger.info("Ledger duplicate: %s", notification.record_id)
        return LedgerResult(record=existing, duplicate=True)

    async def get(self, db: AsyncSession, record_id: str) -> PaymentRecord | None:
        result = await db.execute(_GET_PAYMENT_SQL, {"id": record_id})
        row = result.fetchone()
        return _row_to_record(row) if row else None
