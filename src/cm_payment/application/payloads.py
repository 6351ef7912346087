"""Known webhook payload shapes, as a tagged union.

Gateways have delivered three shapes over time:
  flat: {"requestId"|"paymentRequestId", "transactionId", "amount": 1.0, "currency", ...}
  nested: {"paymentRequestId", "transactionId", "amount": {"amount", "currencyCode"}, "userData"}
  snake: {"payment_request_id"|"request_id", "transaction_id", "amount", "currency", ...}

Anything else is tagged "unknown" and fails validation (fail closed):
fields are never guessed from an unrecognized shape.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from src.cm_common.amounts import MAX_AMOUNT, quantize_amount
from src.cm_common.datetime_utils import ensure_utc, utc_now
from src.cm_common.enums import PaymentStatus
from src.cm_common.errors import MalformedPayloadError
from src.cm_payment.domain.models import PaymentNotification


def payload_shape(raw: Any) -> str:
    if not isinstance(raw, dict):
        return "unknown"
    if "payment_request_id" in raw or "request_id" in raw:
        return "snake"
    if "requestId" in raw or "paymentRequestId" in raw:
        return "nested" if isinstance(raw.get("amount"), dict) else "flat"
    return "unknown"


class _PayloadBase(BaseModel):
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _lower_status(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class FlatPayload(_PayloadBase):
    request_id: str = Field(min_length=1, validation_alias=AliasChoices("requestId", "paymentRequestId"))
    transaction_id: str = Field(
        min_length=1, validation_alias=AliasChoices("transactionId", "txId", "txid")
    )
    amount: Decimal = Field(ge=0, le=MAX_AMOUNT)
    currency: str = Field(min_length=1, validation_alias=AliasChoices("currency", "currencyCode"))
    paid_by: str | None = Field(None, validation_alias=AliasChoices("paidBy", "handle"))
    paid_at: datetime | None = Field(None, validation_alias="paidAt")
    status: PaymentStatus = PaymentStatus.COMPLETED

    def to_notification(self, raw: dict[str, Any]) -> PaymentNotification:
        return _notification(
            self.request_id, self.transaction_id, self.amount, self.currency,
            self.paid_by, None, self.paid_at, self.status, raw,
        )


class NestedAmount(BaseModel):
    amount: Decimal = Field(ge=0, le=MAX_AMOUNT)
    currency_code: str = Field(min_length=1, validation_alias="currencyCode")


class PayerData(BaseModel):
    id: str | None = None
    handle: str | None = None


class NestedPayload(_PayloadBase):
    request_id: str = Field(min_length=1, validation_alias=AliasChoices("paymentRequestId", "requestId"))
    transaction_id: str = Field(min_length=1, validation_alias="transactionId")
    amount: NestedAmount
    user_data: PayerData | None = Field(None, validation_alias="userData")
    paid_by: str | None = Field(None, validation_alias="paidBy")
    paid_at: datetime | None = Field(None, validation_alias="paidAt")
    status: PaymentStatus = PaymentStatus.COMPLETED

    def to_notification(self, raw: dict[str, Any]) -> PaymentNotification:
        payer = self.paid_by or (self.user_data.handle if self.user_data else None)
        payer_id = self.user_data.id if self.user_data else None
        return _notification(
            self.request_id, self.transaction_id, self.amount.amount,
            self.amount.currency_code, payer, payer_id, self.paid_at, self.status, raw,
        )


class SnakePayload(_PayloadBase):
    request_id: str = Field(
        min_length=1, validation_alias=AliasChoices("payment_request_id", "request_id")
    )
    transaction_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, le=MAX_AMOUNT)
    currency: str = Field(min_length=1)
    paid_by: str | None = None
    paid_at: datetime | None = None
    status: PaymentStatus = PaymentStatus.COMPLETED

    def to_notification(self, raw: dict[str, Any]) -> PaymentNotification:
        return _notification(
            self.request_id, self.transaction_id, self.amount, self.currency,
            self.paid_by, None, self.paid_at, self.status, raw,
        )


class UnknownShape(BaseModel):
    @model_validator(mode="before")
    @classmethod
    def _reject(cls, value: Any) -> Any:
        raise ValueError("unrecognized payload shape")


WebhookPayload = Annotated[
    Union[
        Annotated[FlatPayload, Tag("flat")],
        Annotated[NestedPayload, Tag("nested")],
        Annotated[SnakePayload, Tag("snake")],
        Annotated[UnknownShape, Tag("unknown")],
    ],
    Discriminator(payload_shape),
]

_payload_adapter: TypeAdapter[Any] = TypeAdapter(WebhookPayload)


def _notification(
    request_id: str,
    transaction_id: str,
    amount: Decimal,
    currency: str,
    payer: str | None,
    payer_account_id: str | None,
    paid_at: datetime | None,
    status: PaymentStatus,
    raw: dict[str, Any],
) -> PaymentNotification:
    return PaymentNotification(
        external_request_id=request_id,
        transaction_id=transaction_id,
        amount=quantize_amount(amount),
        currency=currency.upper(),
        payer=payer,
        payer_account_id=payer_account_id,
        paid_at=ensure_utc(paid_at) if paid_at else utc_now(),
        status=status.value,
        payload=raw,
    )


def parse_webhook_payload(raw: Any) -> PaymentNotification:
    """Validate a decoded JSON body against the known shapes."""
    try:
        payload = _payload_adapter.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise MalformedPayloadError(f"{loc}: {first.get('msg')}" if loc else first.get("msg", "")) from None
    return payload.to_notification(raw)
