"""
Tests for ingredient resupply and low-stock queries.
"""

import pytest

from shared.utils.exceptions import (
    IngredientNotFoundError,
    InvalidQuantityError,
    ValidationError,
)
from rest_api.models import IngredientPurchase
from rest_api.services.domain import IngredientService
from rest_api.services.domain.ingredient_service import weighted_average_price
from rest_api.services.events import EventType


class TestWeightedAverage:
    def test_blends_prices_by_quantity(self):
        assert weighted_average_price(10.0, 2.0, 10.0, 4.0) == pytest.approx(3.0)

    def test_empty_stock_takes_purchase_price(self):
        assert weighted_average_price(0.0, 2.0, 5.0, 3.5) == pytest.approx(3.5)


class TestResupply:
    def test_resupply_updates_stock_and_price(self, db_session, notifier, seed_ingredients):
        flour = seed_ingredients.flour
        result = IngredientService(db_session, notifier).resupply_ingredient(flour.id, 10.0, 4.0)

        assert result.ingredient.current_stock == pytest.approx(20.0)
        assert result.ingredient.unit_price == pytest.approx(3.0)
        assert result.total_price == pytest.approx(40.0)
        assert db_session.query(IngredientPurchase).count() == 1
        assert notifier.events_on("notifications_updated")[-1].event_type == EventType.STOCK_CHANGED

    @pytest.mark.parametrize("quantity", [0.0, -1.0, float("nan")])
    def test_invalid_quantity(self, db_session, seed_ingredients, quantity):
        with pytest.raises(InvalidQuantityError):
            IngredientService(db_session).resupply_ingredient(
                seed_ingredients.flour.id, quantity, 2.0
            )

    def test_negative_price(self, db_session, seed_ingredients):
        with pytest.raises(ValidationError):
            IngredientService(db_session).resupply_ingredient(seed_ingredients.flour.id, 1.0, -2.0)

    def test_unknown_ingredient(self, db_session, seed_ingredients):
        with pytest.raises(IngredientNotFoundError):
            IngredientService(db_session).resupply_ingredient(9999, 1.0, 2.0)


class TestLowStock:
    def test_low_stock_lists_ingredients_at_or_below_minimum(self, db_session, seed_ingredients):
        low = IngredientService(db_session).get_low_stock_ingredients()
        assert [ingredient.name for ingredient in low] == ["Basil"]

    def test_resupply_clears_low_stock(self, db_session, seed_ingredients):
        service = IngredientService(db_session)
        service.resupply_ingredient(seed_ingredients.basil.id, 100.0, 0.05)
        assert service.get_low_stock_ingredients() == []
