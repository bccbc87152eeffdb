"""
SDK for the x402 usage ledger.

Automatic event logging around functions and outbound HTTP calls.
"""

from .http_client import X402LoggingTransport
from .instrument import logged, status_from_http

__all__ = ["X402LoggingTransport", "logged", "status_from_http"]
