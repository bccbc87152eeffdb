"""
Error taxonomy for the usage ledger.

All failures surfaced by logging and aggregation derive from LedgerError.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for ledger errors."""


class ValidationError(LedgerError):
    """Raised when a supplied field is malformed or not a recognized value.

    The offending field is kept on the exception so callers can report it.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(LedgerError):
    """Raised when a lookup by id has no match."""

    def __init__(self, event_id: int, kind: Optional[str] = None):
        label = kind or "event"
        super().__init__(f"{label} {event_id} not found")
        self.event_id = event_id


class StoreUnavailableError(LedgerError):
    """Raised when the backing store cannot complete an operation."""
