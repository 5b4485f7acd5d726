"""
Sales Ledger Generator.

The only writer of the sales ledger. For a finalized order it writes one row
per line with a catalog product (net revenue from the financial snapshot,
recipe cost, profit) and stores the summed profit back on the order. The
previous rows of the order are always deleted first, so a rerun replaces the
set and never double-counts.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import UNCATEGORIZED_ID, UNCATEGORIZED_NAME
from shared.config.logging import ledger_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.business_day import ensure_utc
from shared.utils.exceptions import (
    InvalidTransitionError,
    LedgerGenerationError,
    OrderNotFoundError,
)
from rest_api.models import Ingredient, Order, Product, SalesLedgerRow
from rest_api.services.finance.costing import product_unit_cost
from rest_api.services.finance.snapshot import FinancialSnapshot, compute_financial_snapshot


def ledger_sale_date(order: Order) -> datetime:
    """Served time, else the finalization stamp; stable across regenerations."""
    return ensure_utc(order.served_at or order.finalized_at or order.created_at)


def build_ledger_rows(
    order: Order,
    snapshot: FinancialSnapshot,
    products: dict[int, Product],
    ingredients: dict[int, Ingredient],
    sale_date: datetime,
) -> list[SalesLedgerRow]:
    """Ledger rows for the order lines, without touching the session."""
    rows = []
    for index, line in enumerate(order.lines):
        product = products.get(line.product_id) if line.product_id is not None else None
        if product is None:
            continue

        unit_cost = product_unit_cost(product, ingredients)
        net_total = snapshot.net_for(index, line.unit_price * line.quantity)
        total_cost = unit_cost * line.quantity
        if product.category is not None:
            category_id, category_name = str(product.category.id), product.category.name
        else:
            category_id, category_name = UNCATEGORIZED_ID, UNCATEGORIZED_NAME

        rows.append(
            SalesLedgerRow(
                order_id=order.id,
                line_position=index,
                product_id=product.id,
                product_name=line.product_name,
                category_id=category_id,
                category_name=category_name,
                quantity=line.quantity,
                unit_revenue=net_total / line.quantity if line.quantity else 0.0,
                total_revenue=net_total,
                unit_cost=unit_cost,
                total_cost=total_cost,
                profit=net_total - total_cost,
                payment_method=order.payment_method,
                sale_date=sale_date,
            )
        )
    return rows


class SalesLedgerService:
    """
    Writes ledger rows inside the caller's transaction.

    ``generate_for_order`` does not commit: finalization commits the status
    change and the ledger together. ``regenerate_for_order`` is the
    operator-triggered retry and commits on its own.
    """

    def __init__(self, db: Session):
        self._db = db

    def _load_products(self, order: Order) -> dict[int, Product]:
        product_ids = {line.product_id for line in order.lines if line.product_id is not None}
        if not product_ids:
            return {}
        products = self._db.scalars(
            select(Product)
            .where(Product.id.in_(product_ids))
            .options(selectinload(Product.recipe_lines), selectinload(Product.category))
        ).all()
        return {product.id: product for product in products}

    def _load_ingredients(self, products: dict[int, Product]) -> dict[int, Ingredient]:
        ingredient_ids = {
            entry.ingredient_id for product in products.values() for entry in product.recipe_lines
        }
        if not ingredient_ids:
            return {}
        return {
            ingredient.id: ingredient
            for ingredient in self._db.scalars(
                select(Ingredient).where(Ingredient.id.in_(ingredient_ids))
            ).all()
        }

    def generate_for_order(self, order: Order) -> list[SalesLedgerRow]:
        """
        Replace the ledger rows of ``order`` and set its profit.

        Raises:
            LedgerGenerationError: the store rejected the ledger writes
        """
        try:
            self._db.execute(delete(SalesLedgerRow).where(SalesLedgerRow.order_id == order.id))

            if not order.lines:
                order.profit = 0.0
                self._db.flush()
                logger.info("Ledger cleared for order without lines", order_id=order.id)
                return []

            snapshot = compute_financial_snapshot(order)
            products = self._load_products(order)
            ingredients = self._load_ingredients(products)
            rows = build_ledger_rows(
                order, snapshot, products, ingredients, sale_date=ledger_sale_date(order)
            )

            self._db.add_all(rows)
            order.profit = sum(row.profit for row in rows)
            self._db.flush()
        except SQLAlchemyError as exc:
            raise LedgerGenerationError(order.id, str(exc)) from exc

        logger.info(
            "Ledger generated",
            order_id=order.id,
            rows=len(rows),
            profit=order.profit,
        )
        return rows

    def regenerate_for_order(self, order_id: int) -> list[SalesLedgerRow]:
        """
        Rebuild the ledger of a finalized order and commit.

        Raises:
            OrderNotFoundError: unknown order
            InvalidTransitionError: the order is not finalized
        """
        order = self._db.scalar(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.lines))
            .with_for_update()
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.is_finalized:
            raise InvalidTransitionError("Order", order.status, "ledger regeneration", order_id=order_id)

        try:
            rows = self.generate_for_order(order)
        except LedgerGenerationError:
            self._db.rollback()
            raise
        safe_commit(self._db, operation="ledger regeneration", entity_id=order_id)
        return rows

    def rows_for_order(self, order_id: int) -> list[SalesLedgerRow]:
        return list(
            self._db.scalars(
                select(SalesLedgerRow)
                .where(SalesLedgerRow.order_id == order_id)
                .order_by(SalesLedgerRow.line_position)
            ).all()
        )
