"""Domain models for cm_payment: pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


def payment_record_id(external_request_id: str, transaction_id: str) -> str:
    """Composite idempotency key: one record per (request, transaction)."""
    return f"{external_request_id}-{transaction_id}"


@dataclass(frozen=True)
class Allocation:
    destination: str
    amount: Decimal


@dataclass(frozen=True)
class PaymentDestinationConfig:
    """Explicit payout configuration; no environment-dependent fallbacks."""

    destinations: str                       # "a:0.6,b:0.4"
    currency: str
    fallback_destination: str | None = None


@dataclass(frozen=True)
class PaymentNotification:
    """Authenticated, normalized webhook candidate, not yet ledgered."""

    external_request_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    payer: str | None
    payer_account_id: str | None
    paid_at: datetime
    status: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def record_id(self) -> str:
        return payment_record_id(self.external_request_id, self.transaction_id)


@dataclass(frozen=True)
class PaymentRecord:
    """Ledger row. Created once, never mutated."""

    id: str
    external_request_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    payer: str | None
    paid_at: datetime
    status: str
    payload: dict[str, Any]
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerResult:
    record: PaymentRecord
    duplicate: bool


@dataclass(frozen=True)
class GatewayPaymentRequest:
    """What the gateway hands back for a newly created payment request."""

    external_request_id: str
    external_request_url: str
