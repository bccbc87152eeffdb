"""
Unit tests for event record models.
"""

from datetime import datetime, timezone

import pytest

from x402_ledger.core.errors import ValidationError
from x402_ledger.core.status import ServiceCategory, SpendingStatus, UsageStatus
from x402_ledger.storage.models import Dimension, SpendingEvent, UsageEvent

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestEventRecord:
    """Test accessors shared by both record kinds."""

    def test_amount_defaults_to_zero(self):
        event = UsageEvent(status=UsageStatus.SUCCESS, created_at=NOW)
        assert event.amount == 0
        assert event.timestamp == NOW

    def test_is_success(self):
        assert UsageEvent(status=UsageStatus.SUCCESS, created_at=NOW).is_success
        assert not SpendingEvent(status=SpendingStatus.PENDING, created_at=NOW).is_success

    def test_records_are_immutable(self):
        event = UsageEvent(status=UsageStatus.SUCCESS, created_at=NOW)
        with pytest.raises(AttributeError):
            event.amount_atomic = 5

    def test_with_id(self):
        event = UsageEvent(status=UsageStatus.SUCCESS, created_at=NOW, amount_atomic=10)
        stored = event.with_id(3)
        assert stored.id == 3
        assert event.id is None
        assert stored.amount_atomic == 10


class TestDimensions:
    """Test grouping keys per record kind."""

    def test_usage_dimensions(self):
        event = UsageEvent(
            status=UsageStatus.SUCCESS, created_at=NOW, actor_id="a", endpoint="/x"
        )
        assert event.group_key(Dimension.ACTOR) == "a"
        assert event.group_key(Dimension.ENDPOINT) == "/x"
        assert event.group_key(Dimension.STATUS) is UsageStatus.SUCCESS

    def test_usage_has_no_service_dimension(self):
        event = UsageEvent(status=UsageStatus.SUCCESS, created_at=NOW)
        assert not UsageEvent.supports(Dimension.SERVICE)
        with pytest.raises(ValidationError):
            event.group_key(Dimension.SERVICE)

    def test_spending_service_label(self):
        event = SpendingEvent(
            status=SpendingStatus.SUCCESS,
            created_at=NOW,
            service_id="weather-api",
            service_name="Weather API",
            category=ServiceCategory.DATA_API,
            budget_id="b-1",
        )
        assert event.group_key(Dimension.SERVICE) == "weather-api"
        assert event.group_label(Dimension.SERVICE) == "Weather API"
        assert event.group_label(Dimension.ACTOR) is None
        assert event.group_key(Dimension.CATEGORY) is ServiceCategory.DATA_API
        assert event.group_key(Dimension.BUDGET) == "b-1"

    def test_missing_key_is_none(self):
        event = SpendingEvent(status=SpendingStatus.SUCCESS, created_at=NOW)
        assert event.group_key(Dimension.ACTOR) is None

    def test_scope_fields(self):
        assert UsageEvent.SCOPE_FIELD == "tenant_id"
        assert SpendingEvent.SCOPE_FIELD == "actor_id"
