"""Pydantic schemas for cm_mint API requests and responses."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from src.cm_common.amounts import amount_to_display
from src.cm_mint.domain.models import MintedItemRecord, MintIntent, TemplateProgress

# ---------------------------------------------------------------------------
# Internal results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconcileOutcome:
    intent: MintIntent | None
    transitioned: bool


@dataclass(frozen=True)
class FulfillmentResult:
    intent_id: str
    outcome: str
    status: str
    error: str | None = None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class IssueRequest(BaseModel):
    pool: str | None = Field(None, max_length=64)
    collection_id: str | None = Field(None, max_length=64)
    quantity: int = Field(1, ge=1)
    activation_time: datetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class IssueResponse(BaseModel):
    intent_id: str
    external_request_id: str
    external_request_url: str
    amount: str
    amount_display: str
    currency: str

    @classmethod
    def from_intent(cls, intent: MintIntent) -> "IssueResponse":
        return cls(
            intent_id=intent.id,
            external_request_id=intent.external_request_id,
            external_request_url=intent.external_request_url,
            amount=str(intent.amount_requested),
            amount_display=amount_to_display(intent.amount_requested, intent.currency),
            currency=intent.currency,
        )


class MintedItemOut(BaseModel):
    id: str
    origin: str
    name: str
    rarity: str | None
    image_url: str | None
    multimedia_url: str | None

    @classmethod
    def from_domain(cls, r: MintedItemRecord) -> "MintedItemOut":
        return cls(
            id=r.id,
            origin=r.origin,
            name=r.item_name,
            rarity=r.rarity,
            image_url=r.image_url,
            multimedia_url=r.multimedia_url,
        )


class MintStatusResponse(BaseModel):
    intent_id: str
    external_request_id: str
    status: str
    quantity: int
    paid_at: str | None
    activation_time: str | None
    item: MintedItemOut | None
    items: list[MintedItemOut]

    @classmethod
    def from_domain(
        cls, intent: MintIntent, records: list[MintedItemRecord]
    ) -> "MintStatusResponse":
        items = [MintedItemOut.from_domain(r) for r in records]
        return cls(
            intent_id=intent.id,
            external_request_id=intent.external_request_id,
            status=intent.status,
            quantity=intent.quantity,
            paid_at=intent.paid_at.isoformat() if intent.paid_at else None,
            activation_time=(
                intent.activation_time.isoformat() if intent.activation_time else None
            ),
            item=items[0] if items else None,
            items=items,
        )


class IntentStatusOut(BaseModel):
    intent_id: str
    status: str


class WebhookAck(BaseModel):
    payment_id: str
    duplicate: bool
    intent_id: str | None = None
    intent_status: str | None = None


class FulfillmentResultOut(BaseModel):
    intent_id: str
    outcome: str
    status: str
    error: str | None

    @classmethod
    def from_result(cls, r: FulfillmentResult) -> "FulfillmentResultOut":
        return cls(intent_id=r.intent_id, outcome=r.outcome, status=r.status, error=r.error)


class SchedulerRunResponse(BaseModel):
    processed: int
    results: list[FulfillmentResultOut]


class TemplateProgressOut(BaseModel):
    template_ref: str
    name: str
    rarity: str | None
    minted: int
    supply_limit: int
    remaining: int | None

    @classmethod
    def from_domain(cls, p: TemplateProgress) -> "TemplateProgressOut":
        return cls(
            template_ref=p.template_ref,
            name=p.name,
            rarity=p.rarity,
            minted=p.minted,
            supply_limit=p.supply_limit,
            remaining=max(p.supply_limit - p.minted, 0) if p.supply_limit else None,
        )


class PoolProgressResponse(BaseModel):
    pool: str
    templates: list[TemplateProgressOut]
    total_minted: int
    updated_at: str
