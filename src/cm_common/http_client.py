"""httpx helpers for the external collaborators (gateway, identity, minting).

Every outbound call is bounded by HTTP_TIMEOUT_SECONDS. Transport errors,
timeouts, non-2xx statuses and non-JSON bodies all surface as
DownstreamUnavailableError so callers have one failure type to park on.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.cm_common.errors import DownstreamUnavailableError

logger = logging.getLogger(__name__)


def build_async_client(
    base_url: str,
    *,
    extra_headers: dict[str, str] | None = None,
    timeout_seconds: float | None = None,
) -> httpx.AsyncClient:
    headers = {"Accept": "application/json", "User-Agent": f"{settings.APP_NAME}/0.1.0"}
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=httpx.Timeout(timeout_seconds or settings.HTTP_TIMEOUT_SECONDS),
        headers=headers,
    )


async def request_json(
    client: httpx.AsyncClient,
    service: str,
    method: str,
    path: str,
    **kwargs: Any,
) -> Any:
    try:
        response = await client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()
    except httpx.TimeoutException as exc:
        logger.warning("%s %s %s timed out", service, method, path)
        raise DownstreamUnavailableError(service, "timeout") from exc
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "%s %s %s → %d", service, method, path, exc.response.status_code
        )
        raise DownstreamUnavailableError(
            service, f"HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        logger.warning("%s %s %s failed: %s", service, method, path, exc)
        raise DownstreamUnavailableError(service, type(exc).__name__) from exc
    except ValueError as exc:
        raise DownstreamUnavailableError(service, "invalid JSON response") from exc
