"""
Aggregation of usage and spending events.

Computes totals, per-dimension rankings and daily buckets from filtered
event scans. The functions here are pure and generic over any record
exposing ``timestamp``, ``status``, ``amount`` and ``group_key``, so
seller and buyer events share one implementation.

Monetary sums are SUCCESS-gated: only events whose status is SUCCESS
contribute their amount, whatever the amount field happens to hold.
"""

from dataclasses import dataclass
from datetime import date, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo

import structlog

from x402_ledger.storage.models import Dimension, EventRecord
from x402_ledger.storage.repository import EventStore

from .errors import ValidationError
from .filters import EventPage, QueryFilter
from .overview import Overview, build_overview
from .status import optional_enum, require_enum

log = structlog.get_logger()

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class Totals:
    """Headline numbers for a filtered event set."""
    count: int
    success_count: int
    amount_sum: int
    success_rate: float


@dataclass(frozen=True)
class GroupAggregation:
    """One group of a dimension rollup.

    ``key`` is None for events that have no value for the dimension.
    """
    key: Any
    count: int
    amount_sum: int
    avg_cost: float
    percent_of_total: float
    label: Optional[str] = None


@dataclass(frozen=True)
class DateBucket:
    """Events of one calendar day in the reporting timezone."""
    date: date
    count: int
    amount_sum: int


def ratio(numerator: float, denominator: float) -> float:
    """Plain division, with 0 for a zero denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def chronological(events: Iterable[EventRecord]) -> List[EventRecord]:
    """Events ordered by creation time, oldest first, ties broken by id.

    Store order is never trusted, since events may be backdated.
    """
    return sorted(events, key=lambda e: (e.timestamp, e.id or 0))


def success_amount(events: Iterable[EventRecord]) -> int:
    return sum(e.amount for e in events if e.is_success)


def compute_totals(events: Sequence[EventRecord]) -> Totals:
    """Count, SUCCESS count, SUCCESS amount and success rate (0-100)."""
    count = len(events)
    success_count = sum(1 for e in events if e.is_success)
    return Totals(
        count=count,
        success_count=success_count,
        amount_sum=success_amount(events),
        success_rate=ratio(success_count * 100, count),
    )


def group_by(
    events: Sequence[EventRecord],
    dimension: Dimension,
    limit: Optional[int] = None,
) -> List[GroupAggregation]:
    """Roll events up by ``dimension``, largest amount first.

    The STATUS dimension partitions every event, so non-SUCCESS statuses
    show their counts with a zero amount. Every other dimension partitions
    SUCCESS events only. Events without a key form their own ``None`` group.

    ``percent_of_total`` is taken against the SUCCESS amount of the whole
    set, before truncation to ``limit``. Ties in amount keep the order in
    which groups were first seen, walking events oldest first.

    Args:
        events: Matching events, in any order
        dimension: Grouping dimension
        limit: Keep only the top N groups; None keeps all

    Returns:
        Groups sorted by amount_sum descending

    Raises:
        ValidationError: If limit is below 1
    """
    if limit is not None and limit < 1:
        raise ValidationError("limit", "must be >= 1")

    ordered = chronological(events)
    if dimension is not Dimension.STATUS:
        ordered = [e for e in ordered if e.is_success]

    overall = success_amount(ordered)

    counts: Dict[Any, int] = {}
    amounts: Dict[Any, int] = {}
    labels: Dict[Any, Optional[str]] = {}
    for event in ordered:
        key = event.group_key(dimension)
        if key not in counts:
            counts[key] = 0
            amounts[key] = 0
            labels[key] = event.group_label(dimension)
        counts[key] += 1
        if event.is_success:
            amounts[key] += event.amount

    groups = [
        GroupAggregation(
            key=key,
            count=counts[key],
            amount_sum=amounts[key],
            avg_cost=ratio(amounts[key], counts[key]),
            percent_of_total=ratio(amounts[key] * 100, overall),
            label=labels[key],
        )
        for key in counts
    ]
    # sorted() is stable, also with reverse=True
    groups = sorted(groups, key=lambda g: g.amount_sum, reverse=True)
    if limit is not None:
        groups = groups[:limit]
    return groups


def bucket_daily(
    events: Iterable[EventRecord],
    zone: tzinfo,
    status: Optional[Enum] = None,
) -> List[DateBucket]:
    """Group events by calendar day in ``zone``, oldest day first.

    Days without events get no bucket. When ``status`` is given only events
    with that status are counted.
    """
    counts: Dict[date, int] = {}
    amounts: Dict[date, int] = {}
    for event in events:
        if status is not None and event.status != status:
            continue
        day = event.timestamp.astimezone(zone).date()
        counts[day] = counts.get(day, 0) + 1
        amounts[day] = amounts.get(day, 0) + (event.amount if event.is_success else 0)

    return [
        DateBucket(date=day, count=counts[day], amount_sum=amounts[day])
        for day in sorted(counts)
    ]


def most_recent(events: Iterable[EventRecord], limit: int) -> List[EventRecord]:
    """The ``limit`` newest events, newest first."""
    if limit < 1:
        raise ValidationError("limit", "must be >= 1")
    return list(reversed(chronological(events)))[:limit]


class AggregationService:
    """Read side of the ledger for one record kind.

    Each call scans the store afresh; nothing is cached between calls.
    """

    def __init__(self, store: EventStore, timezone: Union[str, tzinfo] = "UTC"):
        """Initialize the service.

        Args:
            store: Store to scan
            timezone: Reporting timezone for daily buckets
        """
        self.store = store
        self.record_type = store.record_type
        self.zone = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    def query_totals(self, query: QueryFilter) -> Totals:
        return compute_totals(self._scan(query))

    def query_group_by(
        self,
        dimension: Union[Dimension, str],
        query: QueryFilter,
        limit: Optional[int] = None,
    ) -> List[GroupAggregation]:
        """Top groups for ``dimension`` over the events matching ``query``."""
        dimension = require_enum(Dimension, dimension, "dimension")
        if not self.record_type.supports(dimension):
            raise ValidationError(
                "dimension",
                f"'{dimension.value}' is not available for {self.record_type.KIND} events"
            )
        return group_by(self._scan(query), dimension, limit)

    def query_daily(
        self,
        query: QueryFilter,
        status: Union[Enum, str, None] = None,
    ) -> List[DateBucket]:
        status = optional_enum(self.record_type.STATUS_TYPE, status, "status")
        return bucket_daily(self._scan(query), self.zone, status)

    def query_recent(self, scope_id: Optional[str] = None, limit: int = 20) -> List[EventRecord]:
        """Newest events, optionally for one tenant (seller) or buyer (spending)."""
        if limit < 1:
            raise ValidationError("limit", "must be >= 1")
        return most_recent(self.store.latest(scope_id, limit), limit)

    def query_overview(self, query: QueryFilter) -> Overview:
        return build_overview(self.query_totals(query), query)

    def query_events(self, query: QueryFilter) -> EventPage:
        """One page of matching events, newest first."""
        size = query.size or DEFAULT_PAGE_SIZE
        unpaged = query.unpaged()
        items = self.store.scan(unpaged, limit=size, offset=query.page * size)
        return EventPage(
            items=most_recent(items, size) if items else [],
            total=self.store.count(unpaged),
            page=query.page,
            size=size,
        )

    def spending_by_category(self, query: QueryFilter) -> Dict[Enum, int]:
        """SUCCESS amount per service category, skipping uncategorized events."""
        groups = self.query_group_by(Dimension.CATEGORY, query)
        return {g.key: g.amount_sum for g in groups if g.key is not None}

    def get_event(self, event_id: int) -> EventRecord:
        return self.store.get(event_id)

    def clear_all(self) -> int:
        """Delete every event of this kind. For demo and test resets only."""
        removed = self.store.delete_all()
        log.warning("events_cleared", kind=self.record_type.KIND, removed=removed)
        return removed

    def _scan(self, query: QueryFilter) -> List[EventRecord]:
        return self.store.scan(query.unpaged())
