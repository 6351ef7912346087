"""Domain models for cm_mint — pure dataclasses, no I/O."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.cm_payment.domain.models import payment_record_id


@dataclass
class MintIntent:
    id: str
    external_request_id: str
    external_request_url: str
    account_id: str
    handle: str
    pool: str
    collection_id: str | None
    quantity: int
    amount_requested: Decimal
    currency: str
    status: str
    activation_time: datetime | None
    transaction_id: str | None
    paid_at: datetime | None
    fulfillment_attempts: int
    last_error: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def payment_id(self) -> str | None:
        if self.transaction_id is None:
            return None
        return payment_record_id(self.external_request_id, self.transaction_id)

    def is_due(self, now: datetime) -> bool:
        return self.activation_time is None or self.activation_time <= now


@dataclass(frozen=True)
class WeightedPoolEntry:
    template_ref: str
    name: str
    rarity: str | None
    weight: int
    image_url: str | None
    supply_limit: int = 0                   # 0 = unlimited
    multimedia_url: str | None = None
    description: str = ""
    attributes: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class WeightedPool:
    name: str
    entries: list[WeightedPoolEntry]
    collection_id: str | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class Requester:
    account_id: str
    handle: str


@dataclass(frozen=True)
class CreationItem:
    """One unit of a creation order sent to the minting service."""

    entry: WeightedPoolEntry
    recipient_account_id: str


@dataclass(frozen=True)
class CreatedArtifact:
    id: str
    origin: str
    name: str
    rarity: str | None


@dataclass(frozen=True)
class MintedItemRecord:
    id: str
    origin: str
    template_ref: str
    collection_id: str | None
    recipient_account_id: str
    recipient_handle: str
    item_name: str
    rarity: str | None
    image_url: str | None
    multimedia_url: str | None
    payment_id: str
    unit_index: int
    metadata: dict[str, Any]
    minted_at: datetime | None = None


@dataclass(frozen=True)
class TemplateProgress:
    template_ref: str
    name: str
    rarity: str | None
    minted: int
    supply_limit: int
