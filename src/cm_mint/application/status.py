"""Status Façade — read-only view of an intent for client polling.

Never writes; safe at any polling frequency.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import IntentNotFoundError, MalformedPayloadError
from src.cm_mint.application.schemas import MintStatusResponse
from src.cm_mint.domain.repository import (
    MintedItemRepositoryProtocol,
    MintIntentRepositoryProtocol,
)


class MintStatusService:
    def __init__(
        self,
        intents: MintIntentRepositoryProtocol,
        items: MintedItemRepositoryProtocol,
    ) -> None:
        self._intents = intents
        self._items = items

    async def get_status(
        self,
        db: AsyncSession,
        intent_id: str | None = None,
        external_request_id: str | None = None,
    ) -> MintStatusResponse:
        if intent_id:
            intent = await self._intents.get_by_id(db, intent_id)
        elif external_request_id:
            intent = await self._intents.get_by_external_request_id(db, external_request_id)
        else:
            raise MalformedPayloadError("intent_id or request_id is required")
        if intent is None:
            raise IntentNotFoundError(intent_id or external_request_id or "")

        records = []
        if intent.payment_id is not None:
            records = await self._items.list_by_payment(db, intent.payment_id)
        return MintStatusResponse.from_domain(intent, records)
