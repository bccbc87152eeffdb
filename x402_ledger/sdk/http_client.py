"""
httpx transport that logs outbound x402 requests.

Reads X-402-* request headers for attribution and payment details and
records one usage event per request, including requests that fail at the
transport level.
"""

import time
from typing import Optional

import httpx

from ..core.event_logger import MAX_STORED_INT, UsageLogger
from ..core.status import UsageStatus
from .instrument import elapsed_ms, status_from_http

MAX_USER_AGENT_LENGTH = 500

HEADER_AGENT_ID = "X-402-Agent-Id"
HEADER_NETWORK = "X-402-Network"
HEADER_ASSET = "X-402-Asset"
HEADER_AMOUNT = "X-402-Amount"
HEADER_TX_HASH = "X-402-TxHash"
HEADER_BILLING_KEY = "X-402-Billing-Key"


def parse_amount(raw: Optional[str]) -> Optional[int]:
    """Atomic amount from a header value; anything unparsable is absent."""
    if not raw:
        return None
    try:
        amount = int(raw.strip())
    except ValueError:
        return None
    return amount if 0 <= amount <= MAX_STORED_INT else None


class X402LoggingTransport(httpx.BaseTransport):
    """Wraps another transport and logs every request sent through it.

    Usage:
        client = httpx.Client(transport=X402LoggingTransport(usage_logger))
    """

    def __init__(self, logger: UsageLogger, transport: Optional[httpx.BaseTransport] = None):
        self.logger = logger
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        started = time.perf_counter()
        status = UsageStatus.UNKNOWN_ERROR
        try:
            response = self._transport.handle_request(request)
            status = status_from_http(response.status_code)
            return response
        finally:
            self._log(request, status, elapsed_ms(started))

    def close(self) -> None:
        self._transport.close()

    def _log(self, request: httpx.Request, status: UsageStatus, latency_ms: int) -> None:
        headers = request.headers
        user_agent = headers.get("User-Agent")
        if user_agent is not None:
            user_agent = user_agent[:MAX_USER_AGENT_LENGTH]

        self.logger.builder().set(
            actor_id=headers.get(HEADER_AGENT_ID),
            method=request.method,
            endpoint=str(request.url),
            billing_key=headers.get(HEADER_BILLING_KEY),
            network=headers.get(HEADER_NETWORK),
            asset=headers.get(HEADER_ASSET),
            amount_atomic=parse_amount(headers.get(HEADER_AMOUNT)),
            tx_hash=headers.get(HEADER_TX_HASH),
            user_agent=user_agent,
            latency_ms=latency_ms,
        ).status(status).commit()
