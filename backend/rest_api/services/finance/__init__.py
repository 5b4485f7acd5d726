"""
Finance services: financial snapshot and applied promotions.

Recipe costing lives in finance.costing.
"""

from .promotions import (
    AppliedPromotion,
    PROMOTIONS_ADAPTER,
    resolve_total_discount,
)
from .snapshot import (
    FinancialSnapshot,
    SnapshotCache,
    compute_financial_snapshot,
)

__all__ = [
    "AppliedPromotion",
    "PROMOTIONS_ADAPTER",
    "resolve_total_discount",
    "FinancialSnapshot",
    "SnapshotCache",
    "compute_financial_snapshot",
]
