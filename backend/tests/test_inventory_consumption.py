"""
Tests for recipe-driven inventory consumption.
"""

from types import SimpleNamespace

import pytest

from rest_api.models import Order, OrderLine
from rest_api.services.inventory.consumption import (
    InventoryConsumptionService,
    compute_consumption,
)


def _line(product_id, quantity, excluded=()):
    return SimpleNamespace(
        product_id=product_id,
        quantity=quantity,
        excluded_ingredient_ids=list(excluded),
    )


RECIPES = {
    1: [SimpleNamespace(ingredient_id=10, quantity=50.0)],
    2: [
        SimpleNamespace(ingredient_id=10, quantity=20.0),
        SimpleNamespace(ingredient_id=11, quantity=1.0),
    ],
}


class TestComputeConsumption:
    def test_excluded_ingredient_contributes_nothing(self):
        """50g per unit, quantity 2: excluded gives 0, not excluded gives 100g."""
        assert compute_consumption([_line(1, 2, excluded=[10])], RECIPES) == {}
        assert compute_consumption([_line(1, 2)], RECIPES) == {10: 100.0}

    def test_aggregates_across_lines(self):
        consumption = compute_consumption([_line(1, 1), _line(2, 3)], RECIPES)
        assert consumption == {10: 110.0, 11: 3.0}

    def test_exclusion_is_per_line(self):
        consumption = compute_consumption([_line(1, 2, excluded=[10]), _line(1, 1)], RECIPES)
        assert consumption == {10: 50.0}

    def test_skips_ad_hoc_and_non_positive_lines(self):
        lines = [_line(None, 4), _line(1, 0), _line(1, -2), _line(99, 1)]
        assert compute_consumption(lines, RECIPES) == {}


class TestDeductForOrder:
    def _order(self, db_session, lines):
        order = Order(order_type="dine_in", covers=2, status="finalized", lines=lines)
        db_session.add(order)
        db_session.commit()
        return order

    def test_deducts_in_storage_units(self, db_session, seed_catalog):
        i = seed_catalog.ingredients
        order = self._order(
            db_session,
            [
                OrderLine(
                    position=0,
                    product_id=seed_catalog.margherita.id,
                    product_name="Margherita",
                    unit_price=12.0,
                    quantity=2,
                ),
            ],
        )

        result = InventoryConsumptionService(db_session).deduct_for_order(order)

        assert not result.failed
        assert result.consumption[i.flour.id] == pytest.approx(400.0)
        db_session.refresh(i.flour)
        db_session.refresh(i.tomato_sauce)
        db_session.refresh(i.mozzarella)
        assert i.flour.current_stock == pytest.approx(9.6)
        assert i.tomato_sauce.current_stock == pytest.approx(4.84)
        assert i.mozzarella.current_stock == pytest.approx(2.8)

    def test_excluded_ingredient_left_untouched(self, db_session, seed_catalog):
        i = seed_catalog.ingredients
        order = self._order(
            db_session,
            [
                OrderLine(
                    position=0,
                    product_id=seed_catalog.margherita.id,
                    product_name="Margherita",
                    unit_price=12.0,
                    quantity=1,
                    excluded_ingredient_ids=[i.mozzarella.id],
                ),
            ],
        )

        result = InventoryConsumptionService(db_session).deduct_for_order(order)

        assert i.mozzarella.id not in result.consumption
        db_session.refresh(i.mozzarella)
        assert i.mozzarella.current_stock == pytest.approx(3.0)

    def test_stock_floors_at_zero(self, db_session, seed_catalog):
        i = seed_catalog.ingredients
        order = self._order(
            db_session,
            [
                OrderLine(
                    position=0,
                    product_id=seed_catalog.cola.id,
                    product_name="Cola",
                    unit_price=3.0,
                    quantity=30,
                ),
            ],
        )

        result = InventoryConsumptionService(db_session).deduct_for_order(order)

        assert result.updated[i.cola.id] == 0.0
        db_session.refresh(i.cola)
        assert i.cola.current_stock == 0.0

    def test_ad_hoc_only_order_changes_nothing(self, db_session, seed_catalog):
        order = self._order(
            db_session,
            [OrderLine(position=0, product_name="Corkage", unit_price=8.0, quantity=1)],
        )

        result = InventoryConsumptionService(db_session).deduct_for_order(order)

        assert result.consumption == {}
        assert result.updated == {}
        assert not result.failed
