"""Tests for WebhookAuthenticator — runs before any write."""

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

import pytest

from src.cm_common.errors import MalformedPayloadError, ReplaySuspectedError, UnauthenticatedError
from src.cm_payment.application.webhook_auth import WebhookAuthenticator, parse_timestamp

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
BODY = json.dumps({"requestId": "R1", "transactionId": "T1", "amount": 0.88, "currency": "BSV"}).encode()


def _auth() -> WebhookAuthenticator:
    return WebhookAuthenticator("app-1", "secret-1", freshness_seconds=300, clock=lambda: NOW)


def _headers(**extra: str) -> dict[str, str]:
    return {"App-Id": "app-1", "App-Secret": "secret-1", **extra}


class TestCredentials:
    def test_valid(self) -> None:
        n = _auth().authenticate(_headers(), BODY)
        assert n.record_id == "R1-T1"

    def test_x_prefixed_headers(self) -> None:
        n = _auth().authenticate({"x-app-id": "app-1", "x-app-secret": "secret-1"}, BODY)
        assert n.transaction_id == "T1"

    def test_missing(self) -> None:
        with pytest.raises(UnauthenticatedError):
            _auth().authenticate({}, BODY)

    def test_wrong_secret(self) -> None:
        with pytest.raises(UnauthenticatedError):
            _auth().authenticate({"app-id": "app-1", "app-secret": "nope"}, BODY)

    def test_valid_signature(self) -> None:
        sig = hmac.new(b"secret-1", BODY, hashlib.sha256).hexdigest()
        assert _auth().authenticate(_headers(**{"X-Signature": sig}), BODY).amount

    def test_bad_signature(self) -> None:
        with pytest.raises(UnauthenticatedError):
            _auth().authenticate(_headers(**{"X-Signature": "00" * 32}), BODY)


class TestFreshness:
    def test_recent_timestamp_accepted(self) -> None:
        ts = str(int((NOW - timedelta(minutes=1)).timestamp()))
        _auth().authenticate(_headers(**{"X-Timestamp": ts}), BODY)

    def test_scenario_e_stale_rejected(self) -> None:
        """10 minutes old against a 5 minute window."""
        ts = str(int((NOW - timedelta(minutes=10)).timestamp()))
        with pytest.raises(ReplaySuspectedError):
            _auth().authenticate(_headers(**{"X-Timestamp": ts}), BODY)

    def test_future_timestamp_rejected(self) -> None:
        ts = (NOW + timedelta(minutes=10)).isoformat()
        with pytest.raises(ReplaySuspectedError):
            _auth().authenticate(_headers(**{"X-Timestamp": ts}), BODY)

    def test_credentials_checked_before_freshness(self) -> None:
        ts = str(int((NOW - timedelta(hours=1)).timestamp()))
        with pytest.raises(UnauthenticatedError):
            _auth().authenticate({"app-id": "x", "app-secret": "y", "x-timestamp": ts}, BODY)


class TestParseTimestamp:
    def test_epoch_seconds(self) -> None:
        assert parse_timestamp(str(int(NOW.timestamp()))) == NOW

    def test_epoch_millis(self) -> None:
        assert parse_timestamp(str(int(NOW.timestamp() * 1000))) == NOW

    def test_iso_z(self) -> None:
        assert parse_timestamp("2026-03-01T12:00:00Z") == NOW

    def test_garbage(self) -> None:
        with pytest.raises(MalformedPayloadError):
            parse_timestamp("yesterday")

    @pytest.mark.parametrize(
        "raw", ["99999999999999999999", "-99999999999999999999", "9" * 400, "9" * 5000]
    )
    def test_out_of_range_epoch(self, raw: str) -> None:
        with pytest.raises(MalformedPayloadError):
            parse_timestamp(raw)

    def test_out_of_range_header_is_malformed(self) -> None:
        with pytest.raises(MalformedPayloadError):
            _auth().authenticate(_headers(**{"X-Timestamp": "99999999999999999999"}), BODY)


class TestBody:
    def test_not_json(self) -> None:
        with pytest.raises(MalformedPayloadError):
            _auth().authenticate(_headers(), b"{not json")

    def test_missing_transaction_id(self) -> None:
        with pytest.raises(MalformedPayloadError):
            _auth().authenticate(_headers(), json.dumps({"requestId": "R1", "amount": 1, "currency": "BSV"}).encode())
