"""
Event logging.

Turns named fields into a well-formed event record and appends it to the
store. Failures are loud: validation problems raise ValidationError and
store failures propagate unchanged.
"""

from dataclasses import fields
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Type

import structlog

from x402_ledger.storage.models import EventRecord, SpendingEvent, UsageEvent
from x402_ledger.storage.repository import EventStore

from .clock import as_utc, utc_now
from .errors import ValidationError
from .status import SpendingStatus, UsageStatus, optional_enum, require_enum

log = structlog.get_logger()

# Recorded when the caller does not name a method
DEFAULT_METHOD = "METHOD_CALL"

PAYMENT_FIELDS = ("network", "asset", "amount_atomic")
NON_NEGATIVE_INT_FIELDS = ("amount_atomic", "latency_ms")
# Largest value an SQLite INTEGER column holds
MAX_STORED_INT = 2 ** 63 - 1


class EventLogger:
    """Validates and records events of one record kind.

    Subclasses fix the record type and add convenience methods for common
    outcomes. Defaults such as the tenant are injected at construction.
    """

    record_type: Type[EventRecord] = EventRecord

    def __init__(
        self,
        store: EventStore,
        default_tenant_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the logger.

        Args:
            store: Store receiving one insert per logged event
            default_tenant_id: Tenant recorded when the caller gives none
            clock: Source of "now" for defaulted timestamps
        """
        if store.record_type is not self.record_type:
            raise ValueError(
                f"{type(self).__name__} needs a {self.record_type.__name__} store"
            )
        self.store = store
        self.default_tenant_id = default_tenant_id
        self.clock = clock
        self.field_names = {f.name for f in fields(self.record_type)} - {"id"}
        self.text_fields = (
            self.field_names
            - set(self.record_type.ENUM_FIELDS)
            - set(self.record_type.DATETIME_FIELDS)
            - set(NON_NEGATIVE_INT_FIELDS)
        )

    def log(self, status: Any = None, **values: Any) -> EventRecord:
        """Record a single event.

        Args:
            status: Status member or its name; required
            **values: Any other record field by name

        Returns:
            The stored record, with its id populated

        Raises:
            ValidationError: If a field is unknown or malformed
            StoreUnavailableError: If the store rejects the insert
        """
        record = self._build(status, values)
        event_id = self.store.insert(record)
        stored = record.with_id(event_id)
        log.debug(
            "event_logged",
            kind=stored.KIND,
            id=event_id,
            status=stored.status.name,
            actor_id=stored.actor_id,
            endpoint=stored.endpoint,
        )
        return stored

    def builder(self) -> "EventBuilder":
        """Start a staged construction committed with ``EventBuilder.commit``."""
        return EventBuilder(self)

    def check_fields(self, values: Dict[str, Any]) -> None:
        """Reject names that are not fields of this record kind."""
        for name in values:
            if name not in self.field_names:
                raise ValidationError(
                    name, f"not a field of {self.record_type.KIND} events"
                )

    def _build(self, status: Any, values: Dict[str, Any]) -> EventRecord:
        self.check_fields(values)
        values = dict(values)
        values["status"] = require_enum(self.record_type.STATUS_TYPE, status, "status")

        for name, enum_cls in self.record_type.ENUM_FIELDS.items():
            if name != "status" and name in values:
                values[name] = optional_enum(enum_cls, values[name], name)

        for name in NON_NEGATIVE_INT_FIELDS:
            value = values.get(name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(name, f"must be an integer, got {value!r}")
            if value < 0:
                raise ValidationError(name, "must be >= 0")
            if value > MAX_STORED_INT:
                raise ValidationError(name, "must fit in a signed 64-bit integer")

        for name in self.text_fields:
            value = values.get(name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(name, f"must be text, got {value!r}")

        for name in self.record_type.DATETIME_FIELDS:
            value = values.get(name)
            if value is not None and not isinstance(value, datetime):
                raise ValidationError(name, f"must be a datetime, got {value!r}")
            values[name] = as_utc(value)

        self._apply_defaults(values)
        return self.record_type(**values)

    def _apply_defaults(self, values: Dict[str, Any]) -> None:
        """Fill defaulted fields in place."""
        if values.get("created_at") is None:
            values["created_at"] = self.clock()
        if values.get("method") is None:
            values["method"] = DEFAULT_METHOD
        if values.get("tenant_id") is None:
            values["tenant_id"] = self.default_tenant_id

    @staticmethod
    def _reject_payment_fields(extra: Dict[str, Any]) -> None:
        for name in PAYMENT_FIELDS:
            if extra.get(name) is not None:
                raise ValidationError(name, "not applicable to an event without payment")


class UsageLogger(EventLogger):
    """Records seller-side usage events.

    Example:
        logger.log_success(
            actor_id="agent-123",
            endpoint="/api/resource",
            network="eip155:84532",
            asset="USDC",
            amount_atomic=1_000_000,
            tx_hash="0xabc",
        )
    """

    record_type = UsageEvent

    def _apply_defaults(self, values: Dict[str, Any]) -> None:
        super()._apply_defaults(values)
        if values.get("requested_at") is None:
            values["requested_at"] = self.clock()

    def log_simple(
        self,
        method: Optional[str],
        endpoint: Optional[str],
        status: Any,
        latency_ms: Optional[int] = None,
    ) -> UsageEvent:
        """Log an event with only the request line and outcome."""
        return self.log(status=status, method=method, endpoint=endpoint, latency_ms=latency_ms)

    def log_success(
        self,
        actor_id: Optional[str],
        endpoint: Optional[str],
        network: Optional[str],
        asset: Optional[str],
        amount_atomic: Optional[int],
        tx_hash: Optional[str] = None,
        method: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> UsageEvent:
        """Log a settled payment. ``settled_at`` defaults to now."""
        extra.setdefault("settled_at", self.clock())
        return self.log(
            status=UsageStatus.SUCCESS,
            actor_id=actor_id,
            method=method,
            endpoint=endpoint,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            tx_hash=tx_hash,
            latency_ms=latency_ms,
            **extra,
        )

    def log_payment_required(
        self,
        actor_id: Optional[str],
        endpoint: Optional[str],
        network: Optional[str] = None,
        asset: Optional[str] = None,
        amount_atomic: Optional[int] = None,
        method: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> UsageEvent:
        """Log a 402 response. The quoted price may be recorded but is never summed."""
        return self.log(
            status=UsageStatus.PAYMENT_REQUIRED,
            actor_id=actor_id,
            method=method,
            endpoint=endpoint,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            latency_ms=latency_ms,
            **extra,
        )

    def log_verify_failed(
        self,
        actor_id: Optional[str],
        endpoint: Optional[str],
        method: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> UsageEvent:
        """Log a payment that failed verification."""
        self._reject_payment_fields(extra)
        return self.log(
            status=UsageStatus.VERIFY_FAILED,
            actor_id=actor_id,
            method=method,
            endpoint=endpoint,
            latency_ms=latency_ms,
            **extra,
        )

    def log_settle_failed(
        self,
        actor_id: Optional[str],
        endpoint: Optional[str],
        tx_hash: Optional[str] = None,
        method: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> UsageEvent:
        """Log a payment whose settlement failed."""
        self._reject_payment_fields(extra)
        return self.log(
            status=UsageStatus.SETTLE_FAILED,
            actor_id=actor_id,
            method=method,
            endpoint=endpoint,
            tx_hash=tx_hash,
            latency_ms=latency_ms,
            **extra,
        )


class SpendingLogger(EventLogger):
    """Records buyer-side spending events.

    ``requested_at`` is left to the caller; the configured default buyer is
    recorded as the actor when none is given.
    """

    record_type = SpendingEvent

    def __init__(
        self,
        store: EventStore,
        default_tenant_id: Optional[str] = None,
        default_buyer_id: Optional[str] = None,
        default_buyer_name: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(store, default_tenant_id=default_tenant_id, clock=clock)
        self.default_buyer_id = default_buyer_id
        self.default_buyer_name = default_buyer_name

    def _apply_defaults(self, values: Dict[str, Any]) -> None:
        super()._apply_defaults(values)
        if values.get("actor_id") is None:
            values["actor_id"] = self.default_buyer_id
        if values.get("buyer_name") is None:
            values["buyer_name"] = self.default_buyer_name

    def log_success(
        self,
        buyer_id: Optional[str],
        service_id: Optional[str],
        service_name: Optional[str],
        endpoint: Optional[str],
        category: Any,
        network: Optional[str],
        asset: Optional[str],
        amount_atomic: Optional[int],
        tx_hash: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> SpendingEvent:
        """Log a confirmed payment. ``settled_at`` defaults to now."""
        extra.setdefault("settled_at", self.clock())
        return self.log(
            status=SpendingStatus.SUCCESS,
            actor_id=buyer_id,
            service_id=service_id,
            service_name=service_name,
            endpoint=endpoint,
            category=category,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            tx_hash=tx_hash,
            latency_ms=latency_ms,
            **extra,
        )

    def log_payment_required(
        self,
        buyer_id: Optional[str],
        service_id: Optional[str],
        service_name: Optional[str],
        endpoint: Optional[str],
        category: Any = None,
        network: Optional[str] = None,
        asset: Optional[str] = None,
        amount_atomic: Optional[int] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> SpendingEvent:
        """Log a 402 received from a service."""
        return self.log(
            status=SpendingStatus.PAYMENT_REQUIRED,
            actor_id=buyer_id,
            service_id=service_id,
            service_name=service_name,
            endpoint=endpoint,
            category=category,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            latency_ms=latency_ms,
            **extra,
        )

    def log_pending(
        self,
        buyer_id: Optional[str],
        service_id: Optional[str],
        service_name: Optional[str],
        endpoint: Optional[str],
        category: Any = None,
        network: Optional[str] = None,
        asset: Optional[str] = None,
        amount_atomic: Optional[int] = None,
        payment_id: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> SpendingEvent:
        """Log a payment that was initiated but not yet confirmed."""
        return self.log(
            status=SpendingStatus.PENDING,
            actor_id=buyer_id,
            service_id=service_id,
            service_name=service_name,
            endpoint=endpoint,
            category=category,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            payment_id=payment_id,
            latency_ms=latency_ms,
            **extra,
        )

    def log_failed(
        self,
        buyer_id: Optional[str],
        service_id: Optional[str],
        service_name: Optional[str],
        endpoint: Optional[str],
        error_message: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> SpendingEvent:
        """Log a payment that failed. Carries no payment fields."""
        self._reject_payment_fields(extra)
        return self.log(
            status=SpendingStatus.FAILED,
            actor_id=buyer_id,
            service_id=service_id,
            service_name=service_name,
            endpoint=endpoint,
            error_message=error_message,
            latency_ms=latency_ms,
            **extra,
        )

    def log_rejected(
        self,
        buyer_id: Optional[str],
        service_id: Optional[str],
        service_name: Optional[str],
        endpoint: Optional[str],
        error_message: Optional[str] = None,
        latency_ms: Optional[int] = None,
        **extra: Any,
    ) -> SpendingEvent:
        """Log a payment rejected by the service or facilitator."""
        self._reject_payment_fields(extra)
        return self.log(
            status=SpendingStatus.REJECTED,
            actor_id=buyer_id,
            service_id=service_id,
            service_name=service_name,
            endpoint=endpoint,
            error_message=error_message,
            latency_ms=latency_ms,
            **extra,
        )


class EventBuilder:
    """Collects fields over several calls, then records one event.

    A builder records at most one event; any use after a successful
    ``commit`` raises.
    """

    def __init__(self, logger: EventLogger):
        self._logger = logger
        self._values: Dict[str, Any] = {}
        self._status: Any = None
        self._committed = False

    def set(self, **values: Any) -> "EventBuilder":
        """Stage one or more fields. Later calls override earlier ones."""
        self._ensure_open()
        if "status" in values:
            self._status = values.pop("status")
        self._logger.check_fields(values)
        self._values.update(values)
        return self

    def status(self, status: Any) -> "EventBuilder":
        self._ensure_open()
        self._status = status
        return self

    def commit(self) -> EventRecord:
        """Validate, store and return the event."""
        self._ensure_open()
        record = self._logger.log(status=self._status, **self._values)
        self._committed = True
        return record

    def _ensure_open(self) -> None:
        if self._committed:
            raise RuntimeError("builder already committed; start a new one")
