"""
Inventory services: unit conversion and stock deduction.
"""

from .units import price_to_usage_unit, usage_to_storage, usage_unit_for
from .consumption import InventoryConsumptionService, InventoryDeductionResult

__all__ = [
    "price_to_usage_unit",
    "usage_to_storage",
    "usage_unit_for",
    "InventoryConsumptionService",
    "InventoryDeductionResult",
]
