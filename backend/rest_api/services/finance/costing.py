"""
Recipe costing.
"""

from collections.abc import Iterable, Mapping
from typing import Protocol

from rest_api.models import Ingredient, Product
from rest_api.services.inventory.units import price_to_usage_unit


class _RecipeEntry(Protocol):
    ingredient_id: int
    quantity: float


def calculate_unit_cost(
    recipe: Iterable[_RecipeEntry],
    ingredients: Mapping[int, Ingredient],
) -> float:
    """
    Cost of one unit of a product: sum over recipe entries of the usage-unit
    price times the usage quantity. Entries whose ingredient is unknown cost 0.
    """
    cost = 0.0
    for entry in recipe:
        ingredient = ingredients.get(entry.ingredient_id)
        if ingredient is None:
            continue
        cost += price_to_usage_unit(ingredient.unit, ingredient.unit_price) * entry.quantity
    return cost


def product_unit_cost(product: Product | None, ingredients: Mapping[int, Ingredient]) -> float:
    if product is None:
        return 0.0
    return calculate_unit_cost(product.recipe_lines, ingredients)
