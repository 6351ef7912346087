"""Tests for the httpx clients against httpx.MockTransport."""

import json
from collections.abc import Callable
from decimal import Decimal

import httpx
import pytest

from src.cm_common.errors import DownstreamUnavailableError
from src.cm_mint.domain.models import CreationItem, WeightedPoolEntry
from src.cm_mint.infrastructure.identity_client import HttpIdentityProvider
from src.cm_mint.infrastructure.minting_client import HttpMintingService
from src.cm_payment.domain.models import Allocation
from src.cm_payment.infrastructure.gateway_client import HttpPaymentGateway

ENTRY = WeightedPoolEntry(
    template_ref="tpl-a", name="Ushanka", rarity="Common", weight=1,
    image_url="https://cdn.example.com/a.png",
)


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://svc")


class TestPaymentGateway:
    async def test_creates_request(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "R1", "paymentRequestUrl": "https://pay/R1"})

        gateway = HttpPaymentGateway(client=_client(handler))
        result = await gateway.create_payment_request(
            product_name="Mint", product_description="1 item",
            receivers=[Allocation("a", Decimal("0.52800000")), Allocation("b", Decimal("0.35200000"))],
            currency="BSV", amount=Decimal("0.88000000"),
            webhook_url="https://m/api/v1/webhooks/payment", redirect_url="https://m/done",
            metadata={"intent_id": "mi_1"},
        )

        assert result.external_request_id == "R1"
        assert seen["path"] == "/payment-requests"
        body = seen["body"]
        assert isinstance(body, dict)
        assert body["receivers"][0] == {"destination": "a", "amount": "0.52800000", "currencyCode": "BSV"}
        assert body["metadata"] == {"intent_id": "mi_1"}

    async def test_missing_url_is_downstream_error(self) -> None:
        gateway = HttpPaymentGateway(client=_client(lambda r: httpx.Response(200, json={"id": "R1"})))
        with pytest.raises(DownstreamUnavailableError):
            await gateway.create_payment_request(
                product_name="p", product_description="d", receivers=[], currency="BSV",
                amount=Decimal(1), webhook_url="w", redirect_url="r", metadata={},
            )

    async def test_http_error_is_downstream_error(self) -> None:
        gateway = HttpPaymentGateway(client=_client(lambda r: httpx.Response(503)))
        with pytest.raises(DownstreamUnavailableError, match="HTTP 503"):
            await gateway.create_payment_request(
                product_name="p", product_description="d", receivers=[], currency="BSV",
                amount=Decimal(1), webhook_url="w", redirect_url="r", metadata={},
            )


class TestIdentityProvider:
    async def test_resolves_normalised_handle(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"handles": ["alice"]}
            return httpx.Response(200, json={"alice": "acct-42"})

        provider = HttpIdentityProvider(client=_client(handler))
        assert await provider.resolve_handle(" $Alice ") == "acct-42"

    async def test_unknown_handle(self) -> None:
        provider = HttpIdentityProvider(client=_client(lambda r: httpx.Response(200, json={})))
        assert await provider.resolve_handle("ghost") is None

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider = HttpIdentityProvider(client=_client(handler))
        with pytest.raises(DownstreamUnavailableError, match="timeout"):
            await provider.resolve_handle("alice")


class TestMintingService:
    async def test_submits_then_polls(self) -> None:
        polls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["collectionId"] == "col-main"
                assert body["items"][0]["user"] == "acct-1"
                assert body["items"][0]["mediaDetails"]["image"]["url"] == ENTRY.image_url
                return httpx.Response(200, json={"id": "ord-1"})
            polls["count"] += 1
            if polls["count"] < 3:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{"id": "item-1", "origin": "o-1", "name": "Ushanka", "rarity": "Common"}])

        service = HttpMintingService(client=_client(handler), poll_attempts=5, poll_interval_seconds=0)
        artifacts = await service.mint_items("col-main", [CreationItem(entry=ENTRY, recipient_account_id="acct-1")])

        assert [(a.id, a.origin) for a in artifacts] == [("item-1", "o-1")]
        assert polls["count"] == 3

    async def test_gives_up_after_poll_attempts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "ord-1"})
            return httpx.Response(200, json=[])

        service = HttpMintingService(client=_client(handler), poll_attempts=2, poll_interval_seconds=0)
        with pytest.raises(DownstreamUnavailableError):
            await service.mint_items("col-main", [CreationItem(entry=ENTRY, recipient_account_id="acct-1")])

    async def test_non_json_body(self) -> None:
        service = HttpMintingService(client=_client(lambda r: httpx.Response(200, text="<html>")))
        with pytest.raises(DownstreamUnavailableError, match="invalid JSON"):
            await service.mint_items("col-main", [CreationItem(entry=ENTRY, recipient_account_id="acct-1")])
