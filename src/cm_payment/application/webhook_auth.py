"""Webhook Authenticator: runs before any ledger or intent write.

Checks, in order:
  1. app-id / app-secret headers equal the configured pair (constant-time).
  2. If a signature header is present, it equals hex HMAC-SHA256(secret, raw body).
  3. If a timestamp header is present, it lies within the freshness window.
  4. The body is JSON of a known payload shape with non-empty requestId / transactionId.
Returns a normalized PaymentNotification; raises UnauthenticatedError,
ReplaySuspectedError or MalformedPayloadError otherwise.
"""

import hashlib
import hmac
import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from src.cm_common.datetime_utils import ensure_utc, utc_now
from src.cm_common.errors import (
    MalformedPayloadError,
    ReplaySuspectedError,
    UnauthenticatedError,
)
from src.cm_payment.application.payloads import parse_webhook_payload
from src.cm_payment.domain.models import PaymentNotification

logger = logging.getLogger(__name__)

APP_ID_HEADERS = ("app-id", "x-app-id")
APP_SECRET_HEADERS = ("app-secret", "x-app-secret")
SIGNATURE_HEADERS = ("handcash-signature", "x-handcash-signature", "x-signature")
TIMESTAMP_HEADERS = ("x-timestamp", "timestamp")

# Epoch values above this are milliseconds (year 5138 in seconds).
_EPOCH_MS_THRESHOLD = 100_000_000_000


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def parse_timestamp(raw: str) -> datetime:
    """Epoch seconds, epoch milliseconds or ISO-8601."""
    raw = raw.strip()
    if raw.lstrip("-").isdigit():
        try:
            value = int(raw)
            seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise MalformedPayloadError(f"timestamp header out of range '{raw}'") from None
    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        raise MalformedPayloadError(f"unparseable timestamp header '{raw}'") from None


class WebhookAuthenticator:
    def __init__(
        self,
        app_id: str,
        app_secret: str,
        freshness_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._app_id = app_id
        self._app_secret = app_secret
        self._freshness_seconds = freshness_seconds
        self._clock = clock

    def authenticate(self, headers: Mapping[str, str], body: bytes) -> PaymentNotification:
        normalized = {k.lower(): v for k, v in headers.items()}
        self._check_credentials(normalized, body)
        self._check_freshness(normalized)
        return self._parse_body(body)

    def _check_credentials(self, headers: dict[str, str], body: bytes) -> None:
        app_id = _first_header(headers, APP_ID_HEADERS)
        app_secret = _first_header(headers, APP_SECRET_HEADERS)
        if app_id is None or app_secret is None:
            raise UnauthenticatedError("missing webhook credentials")
        id_ok = hmac.compare_digest(app_id.encode(), self._app_id.encode())
        secret_ok = hmac.compare_digest(app_secret.encode(), self._app_secret.encode())
        if not (id_ok and secret_ok):
            logger.warning("Webhook credential mismatch (app_id_ok=%s)", id_ok)
            raise UnauthenticatedError("webhook credentials do not match")

        signature = _first_header(headers, SIGNATURE_HEADERS)
        if signature is not None:
            expected = hmac.new(self._app_secret.encode(), body, hashlib.sha256).hexdigest()
            if not hmac.compare_digest(signature.strip().lower(), expected):
                logger.warning("Webhook signature mismatch")
                raise UnauthenticatedError("invalid webhook signature")

    def _check_freshness(self, headers: dict[str, str]) -> None:
        raw = _first_header(headers, TIMESTAMP_HEADERS)
        if raw is None:
            return
        sent_at = parse_timestamp(raw)
        age = (self._clock() - sent_at).total_seconds()
        if abs(age) > self._freshness_seconds:
            logger.warning("Webhook timestamp outside window: age=%.0fs", age)
            raise ReplaySuspectedError(age)

    def _parse_body(self, body: bytes) -> PaymentNotification:
        try:
            raw = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise MalformedPayloadError("body is not valid JSON") from None
        return parse_webhook_payload(raw)
