"""
Unit tests for status enums and strict parsing.
"""

import pytest

from x402_ledger.core.errors import LedgerError, NotFoundError, ValidationError
from x402_ledger.core.status import (
    AgentType,
    ServiceCategory,
    SpendingStatus,
    UsageStatus,
    optional_enum,
    parse_enum,
    require_enum,
)


class TestParseEnum:
    """Test tagged-result enum parsing."""

    def test_exact_name(self):
        result = parse_enum(UsageStatus, "SUCCESS", "status")
        assert result.ok
        assert result.value is UsageStatus.SUCCESS

    def test_case_insensitive(self):
        """Names match regardless of case and surrounding whitespace."""
        assert parse_enum(SpendingStatus, " pending ", "status").unwrap() is SpendingStatus.PENDING
        assert parse_enum(AgentType, "Claude", "actor_type").unwrap() is AgentType.CLAUDE

    def test_member_passes_through(self):
        result = parse_enum(ServiceCategory, ServiceCategory.STORAGE, "category")
        assert result.value is ServiceCategory.STORAGE

    def test_unknown_name_is_error_not_default(self):
        """Unknown text never degrades to a fallback member."""
        result = parse_enum(UsageStatus, "MAYBE", "status")
        assert not result.ok
        assert result.value is None
        assert result.error.field == "status"
        assert "MAYBE" in result.error.message

    @pytest.mark.parametrize("raw", [None, "", "   ", 42])
    def test_missing_or_blank(self, raw):
        result = parse_enum(AgentType, raw, "actor_type")
        assert not result.ok
        assert result.error.message == "a value is required"

    def test_member_of_other_enum_rejected(self):
        """A SpendingStatus is not accepted where a UsageStatus is expected."""
        result = parse_enum(UsageStatus, SpendingStatus.SUCCESS, "status")
        assert not result.ok
        assert "UsageStatus" in result.error.message

    def test_unwrap_raises_captured_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_enum(UsageStatus, "nope", "status").unwrap()
        assert exc_info.value.field == "status"


class TestRequireAndOptional:
    """Test raising helpers."""

    def test_require_enum_raises(self):
        with pytest.raises(ValidationError):
            require_enum(SpendingStatus, "", "status")

    def test_optional_enum_allows_none(self):
        assert optional_enum(ServiceCategory, None, "category") is None

    def test_optional_enum_still_strict(self):
        with pytest.raises(ValidationError):
            optional_enum(ServiceCategory, "FOOD", "category")


class TestTaxonomy:
    """Test enum members and error hierarchy."""

    def test_usage_statuses(self):
        assert [s.name for s in UsageStatus] == [
            "SUCCESS", "PAYMENT_REQUIRED", "VERIFY_FAILED", "SETTLE_FAILED", "UNKNOWN_ERROR",
        ]

    def test_spending_statuses(self):
        assert {s.name for s in SpendingStatus} == {
            "SUCCESS", "PENDING", "FAILED", "REJECTED", "REFUNDED", "PAYMENT_REQUIRED",
        }

    def test_service_categories(self):
        assert len(ServiceCategory) == 10
        assert ServiceCategory.OTHER.value == "OTHER"

    def test_errors_share_base(self):
        assert issubclass(ValidationError, LedgerError)
        assert issubclass(NotFoundError, LedgerError)
        assert str(ValidationError("amount_atomic", "must be >= 0")) == "amount_atomic: must be >= 0"
        assert str(NotFoundError(7, "usage")) == "usage 7 not found"
