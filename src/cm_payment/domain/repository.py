"""Repository / client Protocols for cm_payment.

Unit tests inject fakes conforming to these; infrastructure/ provides the real ones.
"""

from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_payment.domain.models import (
    Allocation,
    GatewayPaymentRequest,
    LedgerResult,
    PaymentNotification,
    PaymentRecord,
)


class PaymentLedgerProtocol(Protocol):
    async def append(
        self, db: AsyncSession, notification: PaymentNotification
    ) -> LedgerResult: ...

    async def get(self, db: AsyncSession, record_id: str) -> PaymentRecord | None: ...


class PaymentGatewayProtocol(Protocol):
    async def create_payment_request(
        self,
        *,
        product_name: str,
        product_description: str,
        receivers: list[Allocation],
        currency: str,
        amount: Decimal,
        webhook_url: str,
        redirect_url: str,
        metadata: dict[str, Any],
    ) -> GatewayPaymentRequest: ...
