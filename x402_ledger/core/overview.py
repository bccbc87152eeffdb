"""
Overview metrics.

Combines headline totals with the queried window into one summary.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from .filters import QueryFilter

if TYPE_CHECKING:
    from .aggregation import Totals


@dataclass(frozen=True)
class Overview:
    """Summary of a filtered event set over [start, end]."""
    start: datetime
    end: datetime
    total_count: int
    success_count: int
    amount_sum: int
    success_rate: float
    avg_cost: float


def build_overview(totals: "Totals", query: QueryFilter) -> Overview:
    """Derive the overview from totals.

    ``avg_cost`` is the SUCCESS amount per SUCCESS event, matching the
    per-group average of the rollups; it is 0 when nothing succeeded.
    """
    avg_cost = totals.amount_sum / totals.success_count if totals.success_count else 0.0
    return Overview(
        start=query.start,
        end=query.end,
        total_count=totals.count,
        success_count=totals.success_count,
        amount_sum=totals.amount_sum,
        success_rate=totals.success_rate,
        avg_cost=avg_cost,
    )
