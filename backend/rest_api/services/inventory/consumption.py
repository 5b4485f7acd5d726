"""
Inventory consumption engine.

Turns the lines of a finalized order into ingredient consumption through the
product recipes and decrements stock, floored at zero. Deduction is
best-effort: failures are logged and reported in the result, never raised,
because a missed deduction can be fixed by a manual stock correction while a
missed sale cannot.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from shared.config.logging import inventory_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import AppException
from rest_api.models import Ingredient, Order, Product, RecipeLine
from rest_api.services.inventory.units import usage_to_storage, usage_unit_for


class _ConsumingLine(Protocol):
    product_id: int | None
    quantity: float
    excluded_ingredient_ids: list[int]


@dataclass
class InventoryDeductionResult:
    """Outcome of a best-effort deduction."""

    order_id: int | None = None
    # Ingredient id -> consumption in usage units (g, ml, piece)
    consumption: dict[int, float] = field(default_factory=dict)
    # Ingredient id -> new stock in storage units, for the writes performed
    updated: dict[int, float] = field(default_factory=dict)
    # Ingredient ids referenced by a recipe but missing from the store
    skipped: list[int] = field(default_factory=list)
    failed: bool = False
    error: str | None = None


def compute_consumption(
    lines: Iterable[_ConsumingLine],
    recipes: Mapping[int, Sequence[RecipeLine]],
) -> dict[int, float]:
    """
    Aggregate usage-unit consumption per ingredient.

    Lines without a catalog product or with a non-positive quantity are
    skipped. A recipe entry whose ingredient the customer excluded contributes
    nothing for that line.
    """
    consumption: dict[int, float] = {}
    for line in lines:
        if line.product_id is None or not line.quantity or line.quantity <= 0:
            continue
        excluded = set(line.excluded_ingredient_ids or [])
        for entry in recipes.get(line.product_id, ()):
            if entry.ingredient_id in excluded:
                continue
            usage = entry.quantity * line.quantity
            if not math.isfinite(usage) or usage <= 0:
                continue
            consumption[entry.ingredient_id] = consumption.get(entry.ingredient_id, 0.0) + usage
    return consumption


def apply_stock_deduction(current_stock: float, storage_quantity: float) -> float:
    """New stock after consuming ``storage_quantity``, never below zero."""
    return max((current_stock or 0.0) - storage_quantity, 0.0)


class InventoryConsumptionService:
    """
    Applies recipe consumption of an order to ingredient stock.

    Runs in its own transaction so a failure here never touches the
    already-committed finalization.
    """

    def __init__(self, db: Session):
        self._db = db

    def _load_recipes(self, product_ids: set[int]) -> dict[int, list[RecipeLine]]:
        if not product_ids:
            return {}
        products = self._db.scalars(
            select(Product)
            .where(Product.id.in_(product_ids))
            .options(selectinload(Product.recipe_lines))
        ).all()
        return {product.id: list(product.recipe_lines) for product in products}

    def deduct_for_order(self, order: Order) -> InventoryDeductionResult:
        result = InventoryDeductionResult(order_id=order.id)
        try:
            product_ids = {line.product_id for line in order.lines if line.product_id is not None}
            recipes = self._load_recipes(product_ids)
            result.consumption = compute_consumption(order.lines, recipes)
            if not result.consumption:
                return result

            ingredients = {
                ingredient.id: ingredient
                for ingredient in self._db.scalars(
                    select(Ingredient)
                    .where(Ingredient.id.in_(result.consumption.keys()))
                    .with_for_update()
                ).all()
            }

            for ingredient_id, usage in result.consumption.items():
                ingredient = ingredients.get(ingredient_id)
                if ingredient is None:
                    result.skipped.append(ingredient_id)
                    logger.warning(
                        "Recipe references unknown ingredient, skipped",
                        order_id=order.id,
                        ingredient_id=ingredient_id,
                    )
                    continue

                converted = usage_to_storage(ingredient.unit, usage)
                new_stock = apply_stock_deduction(ingredient.current_stock, converted)
                if abs(new_stock - (ingredient.current_stock or 0.0)) < settings.money_epsilon:
                    continue
                ingredient.current_stock = new_stock
                result.updated[ingredient_id] = new_stock
                logger.debug(
                    "Stock decremented",
                    ingredient_id=ingredient_id,
                    usage=usage,
                    usage_unit=usage_unit_for(ingredient.unit),
                    new_stock=new_stock,
                )

            safe_commit(self._db, operation="inventory deduction", order_id=order.id)
        except (SQLAlchemyError, AppException) as exc:
            self._db.rollback()
            result.failed = True
            result.error = str(exc)
            result.updated.clear()
            logger.error(
                "Inventory deduction failed, manual stock correction needed",
                order_id=order.id,
                error=str(exc),
                exc_info=True,
            )
            return result

        logger.info(
            "Inventory deducted",
            order_id=order.id,
            ingredients=len(result.updated),
            skipped=len(result.skipped),
        )
        return result
