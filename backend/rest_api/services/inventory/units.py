"""
Unit conversion between storage units and recipe usage units.

Ingredients are stocked and priced in a storage unit (kg, L, piece, or
already fine g/ml). Recipes consume the matching fine usage unit:
kg -> g, L -> ml, everything else 1:1.
"""

from shared.config.constants import IngredientUnit

_USAGE_UNIT = {
    IngredientUnit.KILOGRAM: IngredientUnit.GRAM,
    IngredientUnit.LITER: IngredientUnit.MILLILITER,
}

# Storage units per usage unit
_USAGE_TO_STORAGE = {
    IngredientUnit.KILOGRAM: 1 / 1000,
    IngredientUnit.LITER: 1 / 1000,
    IngredientUnit.GRAM: 1.0,
    IngredientUnit.MILLILITER: 1.0,
    IngredientUnit.PIECE: 1.0,
}


def usage_unit_for(storage_unit: str) -> str:
    """Unit recipes use for an ingredient stored in ``storage_unit``."""
    return _USAGE_UNIT.get(storage_unit, storage_unit)


def usage_to_storage(storage_unit: str, usage_quantity: float) -> float:
    """Convert a recipe quantity (g, ml, piece) into the ingredient's storage unit."""
    return usage_quantity * _USAGE_TO_STORAGE.get(storage_unit, 1.0)


def price_to_usage_unit(storage_unit: str, storage_price: float) -> float:
    """Price per usage unit from a price per storage unit (per-kg -> per-gram)."""
    if storage_unit in IngredientUnit.COARSE:
        return storage_price / 1000
    return storage_price
