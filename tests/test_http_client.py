"""
Unit tests for the httpx logging transport.
"""

import os
import shutil
import tempfile

import httpx
import pytest

from x402_ledger.core.event_logger import UsageLogger
from x402_ledger.core.status import UsageStatus
from x402_ledger.sdk.http_client import X402LoggingTransport, parse_amount
from x402_ledger.storage.models import UsageEvent
from x402_ledger.storage.repository import EventStore


class TestParseAmount:
    """Test X-402-Amount parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("1000000", 1_000_000),
        (" 42 ", 42),
        ("0", 0),
        ("abc", None),
        ("1.5", None),
        ("-3", None),
        (str(10 * 10**18), None),
        ("", None),
        (None, None),
    ])
    def test_parse(self, raw, expected):
        assert parse_amount(raw) == expected


class TestX402LoggingTransport:
    """Test one usage event per outbound request."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = EventStore(UsageEvent, os.path.join(self.temp_dir, "test.db"))
        self.store.initialize_schema()
        self.logger = UsageLogger(self.store, default_tenant_id="tenant-1")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _client(self, handler):
        transport = X402LoggingTransport(self.logger, httpx.MockTransport(handler))
        return httpx.Client(transport=transport)

    def test_paid_request(self):
        with self._client(lambda request: httpx.Response(200, json={"ok": True})) as client:
            response = client.post(
                "https://api.example.com/v1/chat",
                headers={
                    "X-402-Agent-Id": "agent-7",
                    "X-402-Network": "eip155:84532",
                    "X-402-Asset": "USDC",
                    "X-402-Amount": "250000",
                    "X-402-TxHash": "0xfeed",
                    "X-402-Billing-Key": "plan-pro",
                    "User-Agent": "test-agent/1.0",
                },
            )
        assert response.status_code == 200

        [event] = self.store.latest(None, 10)
        assert event.status is UsageStatus.SUCCESS
        assert event.actor_id == "agent-7"
        assert event.method == "POST"
        assert event.endpoint == "https://api.example.com/v1/chat"
        assert event.amount_atomic == 250_000
        assert event.billing_key == "plan-pro"
        assert event.tx_hash == "0xfeed"
        assert event.user_agent == "test-agent/1.0"
        assert event.tenant_id == "tenant-1"
        assert event.latency_ms >= 0

    def test_payment_required(self):
        with self._client(lambda request: httpx.Response(402)) as client:
            client.get("https://api.example.com/v1/data", headers={"X-402-Amount": "oops"})
        [event] = self.store.latest(None, 10)
        assert event.status is UsageStatus.PAYMENT_REQUIRED
        assert event.amount_atomic is None

    def test_transport_error_still_logged(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(httpx.ConnectError):
                client.get("https://api.example.com/down")
        [event] = self.store.latest(None, 10)
        assert event.status is UsageStatus.UNKNOWN_ERROR
        assert event.endpoint == "https://api.example.com/down"

    def test_long_user_agent_truncated(self):
        with self._client(lambda request: httpx.Response(204)) as client:
            client.get("https://api.example.com/", headers={"User-Agent": "x" * 800})
        [event] = self.store.latest(None, 10)
        assert len(event.user_agent) == 500
