"""
Utilities module: Exceptions, business-day clock.

Schemas are imported from shared.utils.schemas directly.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    ConsistencyError,
    DependencyError,
)
from shared.utils.business_day import business_day_start, ensure_utc, utcnow

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ValidationError",
    "ConsistencyError",
    "DependencyError",
    # clock
    "business_day_start",
    "ensure_utc",
    "utcnow",
]
