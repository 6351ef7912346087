"""Payment Gateway client: creates shareable payment requests.

Authenticates with the same app-id / app-secret pair the gateway later
presents on webhook deliveries.
"""

import logging
from decimal import Decimal
from typing import Any

import httpx

from config.settings import settings
from src.cm_common.errors import DownstreamUnavailableError
from src.cm_common.http_client import build_async_client, request_json
from src.cm_payment.domain.models import Allocation, GatewayPaymentRequest

logger = logging.getLogger(__name__)

SERVICE_NAME = "payment_gateway"


class HttpPaymentGateway:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or build_async_client(
            settings.PAYMENT_GATEWAY_URL,
            extra_headers={
                "app-id": settings.WEBHOOK_APP_ID,
                "app-secret": settings.WEBHOOK_APP_SECRET,
            },
        )

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
    ) -> GatewayPaymentRequest:
        body = {
            "productName": product_name,
            "productDescription": product_description,
            "receivers": [
                {
                    "destination": r.destination,
                    "amount": str(r.amount),
                    "currencyCode": currency,
                }
                for r in receivers
            ],
            "totalAmount": str(amount),
            "expirationType": "one_time",
            "redirectUrl": redirect_url,
            "webhookUrl": webhook_url,
            "metadata": metadata,
        }
        data = await request_json(
            self._client, SERVICE_NAME, "POST", "/payment-requests", json=body
        )
        request_id = data.get("id") if isinstance(data, dict) else None
        request_url = data.get("paymentRequestUrl") if isinstance(data, dict) else None
        if not request_id or not request_url:
            raise DownstreamUnavailableError(SERVICE_NAME, "response missing id or url")
        logger.info("Payment request created: %s", request_id)
        return GatewayPaymentRequest(
            external_request_id=str(request_id),
            external_request_url=str(request_url),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
