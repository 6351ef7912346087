"""Item Minting Service client.

A creation order is accepted immediately but its items materialise
asynchronously, so mint_items() submits the order then polls
GET /orders/{id}/items until it returns the created artifacts.
"""

import asyncio
import logging
from typing import Any

import httpx

from config.settings import settings
from src.cm_common.errors import DownstreamUnavailableError
from src.cm_common.http_client import build_async_client, request_json
from src.cm_mint.domain.models import CreatedArtifact, CreationItem

logger = logging.getLogger(__name__)

SERVICE_NAME = "minting_service"


def _item_body(item: CreationItem) -> dict[str, Any]:
    entry = item.entry
    media: dict[str, Any] = {"image": {"url": entry.image_url, "contentType": "image/png"}}
    if entry.multimedia_url:
        media["multimedia"] = {"url": entry.multimedia_url, "contentType": "application/glb"}
    return {
        "user": item.recipient_account_id,
        "name": entry.name,
        "rarity": entry.rarity,
        "description": entry.description,
        "attributes": entry.attributes,
        "mediaDetails": media,
        "quantity": 1,
        "actions": [],
    }


class HttpMintingService:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        poll_attempts: int | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self._client = client or build_async_client(
            settings.MINTING_SERVICE_URL,
            extra_headers={
                "app-id": settings.WEBHOOK_APP_ID,
                "app-secret": settings.WEBHOOK_APP_SECRET,
            },
        )
        self._poll_attempts = poll_attempts or settings.MINT_ORDER_POLL_ATTEMPTS
        self._poll_interval = (
            settings.MINT_ORDER_POLL_INTERVAL_SECONDS
            if poll_interval_seconds is None
            else poll_interval_seconds
        )

    async def mint_items(
        self, collection_id: str, items: list[CreationItem]
    ) -> list[CreatedArtifact]:
        order = await request_json(
            self._client,
            SERVICE_NAME,
            "POST",
            "/orders",
            json={"collectionId": collection_id, "items": [_item_body(i) for i in items]},
        )
        order_id = order.get("id") if isinstance(order, dict) else None
        if not order_id:
            raise DownstreamUnavailableError(SERVICE_NAME, "creation order has no id")
        logger.info("Creation order %s submitted (%d items)", order_id, len(items))

        for attempt in range(1, self._poll_attempts + 1):
            created = await request_json(
                self._client, SERVICE_NAME, "GET", f"/orders/{order_id}/items"
            )
            if isinstance(created, list) and len(created) >= len(items):
                return [
                    CreatedArtifact(
                        id=str(c["id"]),
                        origin=str(c.get("origin") or c["id"]),
                        name=str(c.get("name", "")),
                        rarity=c.get("rarity"),
                    )
                    for c in created[: len(items)]
                ]
            logger.debug("Order %s not ready (attempt %d)", order_id, attempt)
            await asyncio.sleep(self._poll_interval)

        raise DownstreamUnavailableError(
            SERVICE_NAME, f"order {order_id} produced no items after {self._poll_attempts} polls"
        )

    async def aclose(self) -> None:
        await self._client.aclose()
