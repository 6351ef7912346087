# src/cm_mint/infrastructure/persistence.py
"""Raw SQL persistence for mint_intents and minted_items.

Status writes are compare-and-set (WHERE status = :expected ... RETURNING),
so concurrent handlers can neither regress an intent nor apply the same
transition twice. minted_items carries UNIQUE (payment_id, unit_index):
the database, not the caller, closes the double-mint race.
"""
import json
from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_mint.domain.models import MintedItemRecord, MintIntent

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INTENT_COLUMNS = """
    id, external_request_id, external_request_url, account_id, handle,
    pool, collection_id, quantity, amount_requested, currency, status,
    activation_time, transaction_id, paid_at, fulfillment_attempts,
    last_error, created_at, updated_at
"""

_INSERT_INTENT_SQL = text("""
    INSERT INTO mint_intents (id, external_request_id, external_request_url,
        account_id, handle, pool, collection_id, quantity, amount_requested,
        currency, status, activation_time)
    VALUES (:id, :external_request_id, :external_request_url,
        :account_id, :handle, :pool, :collection_id, :quantity, :amount_requested,
        :currency, :status, :activation_time)
""")

_GET_INTENT_BY_ID_SQL = text(f"""
    SELECT {_INTENT_COLUMNS} FROM mint_intents WHERE id = :id
""")

_GET_INTENT_BY_REQUEST_SQL = text(f"""
    SELECT {_INTENT_COLUMNS} FROM mint_intents
    WHERE external_request_id = :external_request_id
""")

_MARK_PAID_SQL = text(f"""
    UPDATE mint_intents
    SET status = 'paid', transaction_id = :transaction_id, paid_at = :paid_at
    WHERE id = :id AND status = 'pending_payment'
    RETURNING {_INTENT_COLUMNS}
""")

_TRANSITION_SQL = text(f"""
    UPDATE mint_intents
    SET status = :target
    WHERE id = :id AND status = :expected
    RETURNING {_INTENT_COLUMNS}
""")

_RECORD_FAILURE_SQL = text(f"""
    UPDATE mint_intents
    SET fulfillment_attempts = fulfillment_attempts + 1, last_error = :error
    WHERE id = :id AND status = 'paid'
    RETURNING {_INTENT_COLUMNS}
""")

_LIST_DUE_PAID_SQL = text(f"""
    SELECT {_INTENT_COLUMNS} FROM mint_intents
    WHERE status = 'paid'
      AND (activation_time IS NULL OR activation_time <= :now)
      AND updated_at < :stale_before
    ORDER BY updated_at ASC
    LIMIT :limit
""")

_ITEM_COLUMNS = """
    id, origin, template_ref, collection_id, recipient_account_id,
    recipient_handle, item_name, rarity, image_url, multimedia_url,
    payment_id, unit_index, metadata, minted_at
"""

_INSERT_ITEM_SQL = text("""
    INSERT INTO minted_items (id, origin, template_ref, collection_id,
        recipient_account_id, recipient_handle, item_name, rarity,
        image_url, multimedia_url, payment_id, unit_index, metadata)
    VALUES (:id, :origin, :template_ref, :collection_id,
        :recipient_account_id, :recipient_handle, :item_name, :rarity,
        :image_url, :multimedia_url, :payment_id, :unit_index, CAST(:metadata AS JSONB))
    ON CONFLICT (payment_id, unit_index) DO NOTHING
    RETURNING id
""")

_LIST_ITEMS_BY_PAYMENT_SQL = text(f"""
    SELECT {_ITEM_COLUMNS} FROM minted_items
    WHERE payment_id = :payment_id
    ORDER BY unit_index
""")

_COUNT_BY_TEMPLATE_SQL = text("""
    SELECT template_ref, COUNT(*) AS minted
    FROM minted_items
    WHERE template_ref IN :template_refs
    GROUP BY template_ref
""").bindparams(bindparam("template_refs", expanding=True))


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_intent(row: Any) -> MintIntent:
    return MintIntent(
        id=row.id,
        external_request_id=row.external_request_id,
        external_request_url=row.external_request_url,
        account_id=row.account_id,
        handle=row.handle,
        pool=row.pool,
        collection_id=row.collection_id,
        quantity=row.quantity,
        amount_requested=row.amount_requested,
        currency=row.currency,
        status=row.status,
        activation_time=row.activation_time,
        transaction_id=row.transaction_id,
        paid_at=row.paid_at,
        fulfillment_attempts=row.fulfillment_attempts,
        last_error=row.last_error,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_item(row: Any) -> MintedItemRecord:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return MintedItemRecord(
        id=row.id,
        origin=row.origin,
        template_ref=row.template_ref,
        collection_id=row.collection_id,
        recipient_account_id=row.recipient_account_id,
        recipient_handle=row.recipient_handle,
        item_name=row.item_name,
        rarity=row.rarity,
        image_url=row.image_url,
        multimedia_url=row.multimedia_url,
        payment_id=row.payment_id,
        unit_index=row.unit_index,
        metadata=metadata or {},
        minted_at=row.minted_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class MintIntentRepository:
    async def insert(self, db: AsyncSession, intent: MintIntent) -> None:
        await db.execute(
            _INSERT_INTENT_SQL,
            {
                "id": intent.id,
                "external_request_id": intent.external_request_id,
                "external_request_url": intent.external_request_url,
                "account_id": intent.account_id,
                "handle": intent.handle,
                "pool": intent.pool,
                "collection_id": intent.collection_id,
                "quantity": intent.quantity,
                "amount_requested": intent.amount_requested,
                "currency": intent.currency,
                "status": intent.status,
                "activation_time": intent.activation_time,
            },
        )

    async def get_by_id(self, db: AsyncSession, intent_id: str) -> MintIntent | None:
        result = await db.execute(_GET_INTENT_BY_ID_SQL, {"id": intent_id})
        row = result.fetchone()
        return _row_to_intent(row) if row else None

    async def get_by_external_request_id(
        self, db: AsyncSession, external_request_id: str
    ) -> MintIntent | None:
        result = await db.execute(
            _GET_INTENT_BY_REQUEST_SQL, {"external_request_id": external_request_id}
        )
        row = result.fetchone()
        return _row_to_intent(row) if row else None

    async def mark_paid(
        self,
        db: AsyncSession,
        intent_id: str,
        transaction_id: str,
        paid_at: datetime,
    ) -> MintIntent | None:
        result = await db.execute(
            _MARK_PAID_SQL,
            {"id": intent_id, "transaction_id": transaction_id, "paid_at": paid_at},
        )
        row = result.fetchone()
        return _row_to_intent(row) if row else None

    async def transition(
        self, db: AsyncSession, intent_id: str, expected: str, target: str
    ) -> MintIntent | None:
        result = await db.execute(
            _TRANSITION_SQL, {"id": intent_id, "expected": expected, "target": target}
        )
        row = result.fetchone()
        return _row_to_intent(row) if row else None

    async def record_failure(
        self, db: AsyncSession, intent_id: str, error: str
    ) -> MintIntent | None:
        result = await db.execute(
            _RECORD_FAILURE_SQL, {"id": intent_id, "error": error[:500]}
        )
        row = result.fetchone()
        return _row_to_intent(row) if row else None

    async def list_due_paid(
        self,
        db: AsyncSession,
        now: datetime,
        stale_before: datetime,
        limit: int,
    ) -> list[MintIntent]:
        result = await db.execute(
            _LIST_DUE_PAID_SQL,
            {"now": now, "stale_before": stale_before, "limit": limit},
        )
        return [_row_to_intent(row) for row in result.fetchall()]


class MintedItemRepository:
    async def list_by_payment(
        self, db: AsyncSession, payment_id: str
    ) -> list[MintedItemRecord]:
        result = await db.execute(_LIST_ITEMS_BY_PAYMENT_SQL, {"payment_id": payment_id})
        return [_row_to_item(row) for row in result.fetchall()]

    async def insert_many(
        self, db: AsyncSession, records: list[MintedItemRecord]
    ) -> int:
        written = 0
        for record in records:
            result = await db.execute(
                _INSERT_ITEM_SQL,
                {
                    "id": record.id,
                    "origin": record.origin,
                    "template_ref": record.template_ref,
                    "collection_id": record.collection_id,
                    "recipient_account_id": record.recipient_account_id,
                    "recipient_handle": record.recipient_handle,
                    "item_name": record.item_name,
                    "rarity": record.rarity,
                    "image_url": record.image_url,
                    "multimedia_url": record.multimedia_url,
                    "payment_id": record.payment_id,
                    "unit_index": record.unit_index,
                    "metadata": json.dumps(record.metadata),
                },
            )
            if result.fetchone() is not None:
                written += 1
        return written

    async def count_by_template(
        self, db: AsyncSession, template_refs: list[str]
    ) -> dict[str, int]:
        if not template_refs:
            return {}
        result = await db.execute(_COUNT_BY_TEMPLATE_SQL, {"template_refs": template_refs})
        return {row.template_ref: row.minted for row in result.fetchall()}
