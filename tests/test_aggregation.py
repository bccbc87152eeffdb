"""
Unit tests for aggregation functions.

These run on in-memory records; the service tests exercise the store.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from x402_ledger.core.aggregation import (
    bucket_daily,
    chronological,
    compute_totals,
    group_by,
    most_recent,
    ratio,
)
from x402_ledger.core.errors import ValidationError
from x402_ledger.core.status import ServiceCategory, SpendingStatus, UsageStatus
from x402_ledger.storage.models import Dimension, SpendingEvent, UsageEvent

BASE = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def usage(status=UsageStatus.SUCCESS, minutes=0, **values):
    return UsageEvent(status=status, created_at=BASE + timedelta(minutes=minutes), **values)


def spending(status=SpendingStatus.SUCCESS, minutes=0, **values):
    return SpendingEvent(status=status, created_at=BASE + timedelta(minutes=minutes), **values)


class TestRatio:
    """Test division helper."""

    def test_zero_denominator(self):
        assert ratio(5, 0) == 0.0

    def test_plain_division(self):
        assert ratio(1, 3) == pytest.approx(0.3333333)


class TestTotals:
    """Test headline totals."""

    def test_success_gated_amounts(self):
        """Ten settled payments and two 402s with quoted prices."""
        events = [usage(amount_atomic=100 * i, minutes=i) for i in range(1, 11)]
        events += [
            usage(UsageStatus.PAYMENT_REQUIRED, amount_atomic=999, minutes=20),
            usage(UsageStatus.PAYMENT_REQUIRED, amount_atomic=999, minutes=21),
        ]
        totals = compute_totals(events)
        assert totals.count == 12
        assert totals.success_count == 10
        assert totals.amount_sum == 5500
        assert totals.success_rate == pytest.approx(83.333, rel=1e-3)

    def test_empty(self):
        totals = compute_totals([])
        assert (totals.count, totals.success_count, totals.amount_sum) == (0, 0, 0)
        assert totals.success_rate == 0.0

    def test_missing_amount_counts_as_zero(self):
        totals = compute_totals([usage(), usage(amount_atomic=7)])
        assert totals.amount_sum == 7
        assert totals.success_rate == 100.0


class TestGroupBy:
    """Test dimension rollups."""

    def test_ranked_by_amount(self):
        events = [
            usage(actor_id="a", amount_atomic=100),
            usage(actor_id="b", amount_atomic=500, minutes=1),
            usage(actor_id="a", amount_atomic=300, minutes=2),
        ]
        groups = group_by(events, Dimension.ACTOR)
        assert [g.key for g in groups] == ["b", "a"]
        assert groups[1].count == 2
        assert groups[1].amount_sum == 400
        assert groups[1].avg_cost == 200.0
        assert groups[0].percent_of_total == pytest.approx(500 * 100 / 900)

    def test_only_success_events_grouped(self):
        events = [
            usage(endpoint="/paid", amount_atomic=100),
            usage(UsageStatus.PAYMENT_REQUIRED, endpoint="/quoted", amount_atomic=5000),
        ]
        groups = group_by(events, Dimension.ENDPOINT)
        assert [g.key for g in groups] == ["/paid"]

    def test_status_partitions_every_event(self):
        events = [
            usage(amount_atomic=10, minutes=0),
            usage(amount_atomic=20, minutes=1),
            usage(amount_atomic=30, minutes=2),
            usage(UsageStatus.PAYMENT_REQUIRED, minutes=3),
            usage(UsageStatus.PAYMENT_REQUIRED, minutes=4),
            usage(UsageStatus.VERIFY_FAILED, amount_atomic=70, minutes=5),
        ]
        groups = group_by(events, Dimension.STATUS)
        counts = {g.key: g.count for g in groups}
        assert counts == {
            UsageStatus.SUCCESS: 3,
            UsageStatus.PAYMENT_REQUIRED: 2,
            UsageStatus.VERIFY_FAILED: 1,
        }
        assert groups[0].key is UsageStatus.SUCCESS
        assert groups[0].amount_sum == 60
        assert groups[0].percent_of_total == 100.0
        failed = next(g for g in groups if g.key is UsageStatus.VERIFY_FAILED)
        assert failed.amount_sum == 0

    def test_buyer_status_counts(self):
        events = [spending(amount_atomic=10, minutes=m) for m in range(3)]
        events += [spending(SpendingStatus.FAILED, minutes=m) for m in range(3, 5)]
        events.append(spending(SpendingStatus.PENDING, amount_atomic=40, minutes=6))
        groups = group_by(events, Dimension.STATUS)
        assert [(g.key, g.count) for g in groups] == [
            (SpendingStatus.SUCCESS, 3),
            (SpendingStatus.FAILED, 2),
            (SpendingStatus.PENDING, 1),
        ]

    def test_groups_partition_success_total(self):
        events = [
            usage(actor_id="a", endpoint="/x", amount_atomic=70),
            usage(actor_id=None, endpoint="/y", amount_atomic=20, minutes=1),
            usage(actor_id="b", endpoint=None, amount_atomic=10, minutes=2),
            usage(UsageStatus.SETTLE_FAILED, actor_id="c", amount_atomic=500, minutes=3),
        ]
        total = compute_totals(events).amount_sum
        for dimension in (Dimension.ACTOR, Dimension.ENDPOINT, Dimension.STATUS):
            assert sum(g.amount_sum for g in group_by(events, dimension)) == total

    def test_ties_keep_first_seen_order(self):
        """Equal amounts rank by first appearance in time, not insertion order."""
        events = [
            usage(actor_id="late", amount_atomic=100, minutes=10),
            usage(actor_id="early", amount_atomic=100, minutes=1),
            usage(actor_id="middle", amount_atomic=100, minutes=5),
        ]
        groups = group_by(events, Dimension.ACTOR)
        assert [g.key for g in groups] == ["early", "middle", "late"]

    def test_percent_computed_before_limit(self):
        events = [
            usage(actor_id="a", amount_atomic=600),
            usage(actor_id="b", amount_atomic=300, minutes=1),
            usage(actor_id="c", amount_atomic=100, minutes=2),
        ]
        groups = group_by(events, Dimension.ACTOR, limit=1)
        assert len(groups) == 1
        assert groups[0].percent_of_total == pytest.approx(60.0)

    def test_missing_key_forms_own_group(self):
        events = [usage(actor_id=None, amount_atomic=50), usage(actor_id="a", amount_atomic=10)]
        groups = group_by(events, Dimension.ACTOR)
        assert groups[0].key is None
        assert groups[0].amount_sum == 50

    def test_zero_total_percent(self):
        groups = group_by([usage(actor_id="a")], Dimension.ACTOR)
        assert groups[0].percent_of_total == 0.0
        assert groups[0].avg_cost == 0.0

    def test_invalid_limit(self):
        with pytest.raises(ValidationError):
            group_by([], Dimension.ACTOR, limit=0)

    def test_service_labels(self):
        events = [
            spending(service_id="weather-api", service_name="Weather API", amount_atomic=5),
            spending(
                service_id="dall-e-3", service_name="DALL-E 3",
                category=ServiceCategory.AI_IMAGE_GENERATION, amount_atomic=9, minutes=1,
            ),
        ]
        groups = group_by(events, Dimension.SERVICE)
        assert [(g.key, g.label) for g in groups] == [
            ("dall-e-3", "DALL-E 3"), ("weather-api", "Weather API"),
        ]

    def test_unsupported_dimension(self):
        with pytest.raises(ValidationError):
            group_by([usage()], Dimension.CATEGORY)


class TestBucketDaily:
    """Test calendar-day buckets."""

    def test_sparse_and_ascending(self):
        events = [
            usage(amount_atomic=10, minutes=60 * 24 * 3),
            usage(amount_atomic=20),
            usage(UsageStatus.PAYMENT_REQUIRED, amount_atomic=99, minutes=1),
        ]
        buckets = bucket_daily(events, timezone.utc)
        assert [b.date for b in buckets] == [date(2026, 1, 10), date(2026, 1, 13)]
        assert (buckets[0].count, buckets[0].amount_sum) == (2, 20)

    def test_status_filter(self):
        events = [usage(), usage(UsageStatus.PAYMENT_REQUIRED)]
        buckets = bucket_daily(events, timezone.utc, UsageStatus.PAYMENT_REQUIRED)
        assert [(b.count, b.amount_sum) for b in buckets] == [(1, 0)]

    def test_reporting_timezone(self):
        """An event at 23:30 UTC lands on the next day in Tokyo."""
        event = UsageEvent(
            status=UsageStatus.SUCCESS,
            created_at=datetime(2026, 1, 10, 23, 30, tzinfo=timezone.utc),
        )
        assert bucket_daily([event], timezone.utc)[0].date == date(2026, 1, 10)
        assert bucket_daily([event], ZoneInfo("Asia/Tokyo"))[0].date == date(2026, 1, 11)

    def test_empty(self):
        assert bucket_daily([], timezone.utc) == []


class TestRecent:
    """Test ordering helpers."""

    def test_chronological_breaks_ties_by_id(self):
        events = [usage(id=2), usage(id=1), usage(id=3, minutes=-1)]
        assert [e.id for e in chronological(events)] == [3, 1, 2]

    def test_most_recent(self):
        events = [usage(minutes=m, id=m + 1) for m in range(5)]
        assert [e.id for e in most_recent(events, 2)] == [5, 4]

    def test_most_recent_invalid_limit(self):
        with pytest.raises(ValidationError):
            most_recent([], 0)
