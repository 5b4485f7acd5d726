"""
Ingredient Domain Service.

Resupply and low-stock queries. Stock decrements from sales live in
services.inventory.consumption.
"""

import math

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.logging import inventory_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    IngredientNotFoundError,
    InvalidQuantityError,
    ValidationError,
)
from shared.utils.schemas import IngredientOutput, ResupplyOutput
from rest_api.models import Ingredient, IngredientPurchase
from rest_api.services.events import ChangeEvent, ChangeNotifier, EventType


def weighted_average_price(
    current_stock: float,
    current_price: float,
    quantity: float,
    unit_price: float,
) -> float:
    """Average unit price after adding ``quantity`` bought at ``unit_price``."""
    stock = max(current_stock or 0.0, 0.0)
    total_stock = stock + quantity
    if total_stock <= 0:
        return unit_price
    return (stock * (current_price or 0.0) + quantity * unit_price) / total_stock


class IngredientService:
    def __init__(self, db: Session, notifier: ChangeNotifier | None = None):
        self._db = db
        self._notifier = notifier

    def list_ingredients(self) -> list[IngredientOutput]:
        ingredients = self._db.scalars(select(Ingredient).order_by(Ingredient.name)).all()
        return [IngredientOutput.model_validate(ingredient) for ingredient in ingredients]

    def get_low_stock_ingredients(self) -> list[Ingredient]:
        """Ingredients at or below their minimum stock."""
        return list(
            self._db.scalars(
                select(Ingredient)
                .where(Ingredient.current_stock <= Ingredient.minimum_stock)
                .order_by(Ingredient.name)
            ).all()
        )

    def resupply_ingredient(
        self,
        ingredient_id: int,
        quantity: float,
        unit_price: float,
    ) -> ResupplyOutput:
        """
        Record a purchase: add stock, update the weighted average price.

        Raises:
            InvalidQuantityError: quantity is not a positive number
            ValidationError: unit price is negative
            IngredientNotFoundError: unknown ingredient
        """
        if quantity is None or not math.isfinite(quantity) or quantity <= 0:
            raise InvalidQuantityError(quantity, ingredient_id=ingredient_id)
        if unit_price is None or not math.isfinite(unit_price) or unit_price < 0:
            raise ValidationError(
                "Unit price must be zero or positive",
                ingredient_id=ingredient_id,
                unit_price=unit_price,
            )

        ingredient = self._db.scalar(
            select(Ingredient).where(Ingredient.id == ingredient_id).with_for_update()
        )
        if ingredient is None:
            raise IngredientNotFoundError(ingredient_id)

        ingredient.unit_price = weighted_average_price(
            ingredient.current_stock, ingredient.unit_price, quantity, unit_price
        )
        ingredient.current_stock = max(ingredient.current_stock or 0.0, 0.0) + quantity
        purchase = IngredientPurchase(
            ingredient_id=ingredient.id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=quantity * unit_price,
        )
        self._db.add(purchase)
        safe_commit(self._db, operation="resupply ingredient", ingredient_id=ingredient_id)

        logger.info(
            "Ingredient resupplied",
            ingredient_id=ingredient.id,
            quantity=quantity,
            new_stock=ingredient.current_stock,
            average_price=round(ingredient.unit_price, 4),
        )
        if self._notifier is not None:
            self._notifier.publish(
                settings.notifications_channel,
                ChangeEvent(
                    event_type=EventType.STOCK_CHANGED,
                    entity_type="ingredient",
                    entity_id=ingredient.id,
                ),
            )

        return ResupplyOutput(
            ingredient=IngredientOutput.model_validate(ingredient),
            purchase_id=purchase.id,
            total_price=purchase.total_price,
        )
