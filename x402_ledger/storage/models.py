"""
Data models for storage layer.

Defines the two event record shapes (seller usage, buyer spending) and the
grouping dimensions they expose to aggregation.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, Optional, Type

from x402_ledger.core.errors import ValidationError
from x402_ledger.core.status import (
    AgentType,
    ServiceCategory,
    SpendingStatus,
    UsageStatus,
)


class Dimension(Enum):
    """Fields usable as a grouping key."""
    ACTOR = "actor"
    ENDPOINT = "endpoint"
    SERVICE = "service"
    STATUS = "status"
    CATEGORY = "category"
    BUDGET = "budget"


class EventRecord:
    """Accessors shared by every record kind.

    Aggregation only ever reads ``timestamp``, ``status``, ``amount`` and
    ``group_key``, so it works unchanged over any subclass.
    """

    KIND: ClassVar[str] = "event"
    TABLE: ClassVar[str] = ""
    STATUS_TYPE: ClassVar[Type[Enum]]
    ENUM_FIELDS: ClassVar[Dict[str, Type[Enum]]] = {}
    DATETIME_FIELDS: ClassVar[tuple] = ("created_at", "requested_at", "settled_at")
    DIMENSIONS: ClassVar[Dict[Dimension, str]] = {}
    # Display names for group keys, e.g. service name for a service id
    LABELS: ClassVar[Dict[Dimension, str]] = {}
    # Column matched by "recent events for X" lookups
    SCOPE_FIELD: ClassVar[str] = "tenant_id"

    @property
    def timestamp(self) -> datetime:
        return self.created_at

    @property
    def amount(self) -> int:
        """Atomic amount, with a missing amount counting as 0."""
        return self.amount_atomic or 0

    @property
    def is_success(self) -> bool:
        return self.status.name == "SUCCESS"

    @classmethod
    def supports(cls, dimension: Dimension) -> bool:
        return dimension in cls.DIMENSIONS

    def group_key(self, dimension: Dimension):
        """Return this record's key for ``dimension`` (may be None)."""
        attr = self.DIMENSIONS.get(dimension)
        if attr is None:
            raise ValidationError(
                "dimension",
                f"'{dimension.value}' is not available for {self.KIND} events"
            )
        return getattr(self, attr)

    def group_label(self, dimension: Dimension) -> Optional[str]:
        attr = self.LABELS.get(dimension)
        return getattr(self, attr) if attr else None

    def with_id(self, event_id: int):
        """Copy of this record carrying the store-assigned id."""
        return replace(self, id=event_id)


@dataclass(frozen=True)
class UsageEvent(EventRecord):
    """Immutable record of one paid request received by a seller.

    ``id`` is None until the store assigns it on insert.
    """
    status: UsageStatus
    created_at: datetime
    id: Optional[int] = None
    tenant_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_type: Optional[AgentType] = None
    method: Optional[str] = None
    endpoint: Optional[str] = None
    billing_key: Optional[str] = None
    network: Optional[str] = None
    asset: Optional[str] = None
    amount_atomic: Optional[int] = None
    tx_hash: Optional[str] = None
    requested_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    latency_ms: Optional[int] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    error_message: Optional[str] = None
    metadata: Optional[str] = None

    KIND: ClassVar[str] = "usage"
    TABLE: ClassVar[str] = "x402_usage_event"
    STATUS_TYPE: ClassVar[Type[Enum]] = UsageStatus
    ENUM_FIELDS: ClassVar[Dict[str, Type[Enum]]] = {
        "status": UsageStatus,
        "actor_type": AgentType,
    }
    DIMENSIONS: ClassVar[Dict[Dimension, str]] = {
        Dimension.ACTOR: "actor_id",
        Dimension.ENDPOINT: "endpoint",
        Dimension.STATUS: "status",
    }
    SCOPE_FIELD: ClassVar[str] = "tenant_id"


@dataclass(frozen=True)
class SpendingEvent(EventRecord):
    """Immutable record of one outbound payment made by a buyer."""
    status: SpendingStatus
    created_at: datetime
    id: Optional[int] = None
    tenant_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_type: Optional[AgentType] = None
    buyer_name: Optional[str] = None
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    service_url: Optional[str] = None
    category: Optional[ServiceCategory] = None
    method: Optional[str] = None
    endpoint: Optional[str] = None
    network: Optional[str] = None
    asset: Optional[str] = None
    amount_atomic: Optional[int] = None
    tx_hash: Optional[str] = None
    payment_id: Optional[str] = None
    budget_id: Optional[str] = None
    project_id: Optional[str] = None
    requested_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    latency_ms: Optional[int] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    error_message: Optional[str] = None
    metadata: Optional[str] = None

    KIND: ClassVar[str] = "spending"
    TABLE: ClassVar[str] = "x402_spending_event"
    STATUS_TYPE: ClassVar[Type[Enum]] = SpendingStatus
    ENUM_FIELDS: ClassVar[Dict[str, Type[Enum]]] = {
        "status": SpendingStatus,
        "actor_type": AgentType,
        "category": ServiceCategory,
    }
    DIMENSIONS: ClassVar[Dict[Dimension, str]] = {
        Dimension.ACTOR: "actor_id",
        Dimension.ENDPOINT: "endpoint",
        Dimension.SERVICE: "service_id",
        Dimension.STATUS: "status",
        Dimension.CATEGORY: "category",
        Dimension.BUDGET: "budget_id",
    }
    LABELS: ClassVar[Dict[Dimension, str]] = {
        Dimension.SERVICE: "service_name",
    }
    # Buyer dashboards are scoped per buyer
    SCOPE_FIELD: ClassVar[str] = "actor_id"
