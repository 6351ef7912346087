"""Identity Provider client — maps wallet handles to opaque account ids."""

import logging

import httpx

from config.settings import settings
from src.cm_common.http_client import build_async_client, request_json

logger = logging.getLogger(__name__)

SERVICE_NAME = "identity_provider"


class HttpIdentityProvider:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or build_async_client(settings.IDENTITY_PROVIDER_URL)

    async def resolve_handle(self, handle: str) -> str | None:
        """Return the account id for `handle`, or None if the provider doesn't know it."""
        key = handle.strip().lstrip("$@").lower()
        if not key:
            return None
        data = await request_json(
            self._client, SERVICE_NAME, "POST", "/handles/resolve", json={"handles": [key]}
        )
        account_id = data.get(key) if isinstance(data, dict) else None
        if not account_id:
            logger.info("Handle not resolvable: %s", key)
            return None
        return str(account_id)

    async def aclose(self) -> None:
        await self._client.aclose()
