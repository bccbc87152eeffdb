"""
Query filters shared by every read path.

A QueryFilter is a plain value: equality criteria plus a mandatory,
inclusive time window over ``created_at``.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from .clock import as_utc
from .errors import ValidationError
from .status import ServiceCategory


@dataclass(frozen=True)
class QueryFilter:
    """Criteria for selecting events.

    Optional criteria left as None match every value. ``start`` and ``end``
    are both required and both inclusive. ``page``/``size`` only apply to
    paginated listings; aggregations always see the full matching set.
    """
    start: datetime
    end: datetime
    tenant_id: Optional[str] = None
    actor_id: Optional[str] = None
    service_id: Optional[str] = None
    status: Optional[Enum] = None
    category: Optional[ServiceCategory] = None
    page: int = 0
    size: Optional[int] = None

    def __post_init__(self):
        """Validate the window and pagination, normalizing instants to UTC."""
        if not isinstance(self.start, datetime):
            raise ValidationError("start", "a concrete instant is required")
        if not isinstance(self.end, datetime):
            raise ValidationError("end", "a concrete instant is required")

        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))

        if self.start > self.end:
            raise ValidationError("start", "must not be after end")
        if self.page < 0:
            raise ValidationError("page", "must be >= 0")
        if self.size is not None and self.size < 1:
            raise ValidationError("size", "must be >= 1")
        if self.category is not None and not isinstance(self.category, ServiceCategory):
            raise ValidationError("category", f"'{self.category}' is not a service category")

    @property
    def offset(self) -> int:
        return self.page * self.size if self.size else 0

    def unpaged(self) -> "QueryFilter":
        """Same criteria without pagination."""
        return replace(self, page=0, size=None)

    def with_scope(self, field_name: str, value: Optional[str]) -> "QueryFilter":
        """Fill the ``field_name`` criterion with ``value`` unless already set.

        Used to apply a configured default tenant or buyer.
        """
        if value is None or getattr(self, field_name) is not None:
            return self
        return replace(self, **{field_name: value})


T = TypeVar("T")


@dataclass(frozen=True)
class EventPage(Generic[T]):
    """One page of events, newest first."""
    items: List[T]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size
