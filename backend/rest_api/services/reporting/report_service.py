"""
Period Aggregation Reporter.

Comparative KPIs over business-day windows. Every money figure comes from
the order's financial snapshot, computed once per order per pass through a
SnapshotCache, and profit uses the same row builder as the sales ledger so
reports and ledger always agree.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import (
    BEST_SELLERS_LIMIT,
    KitchenStatus,
    OTHERS_BUCKET_NAME,
    OrderStatus,
    OrderType,
    RECENT_ORDERS_LIMIT,
    TOP_PRODUCTS_LIMIT,
    TableStatus,
    UNCATEGORIZED_NAME,
    DashboardPeriod,
)
from shared.config.logging import reports_logger as logger
from shared.utils.business_day import (
    business_day_start as resolve_business_day_start,
    ensure_utc,
    local_zone,
    shift_days,
    utcnow,
)
from shared.utils.exceptions import ValidationError
from shared.utils.schemas import (
    CategorySales,
    DailyReportOutput,
    DashboardStatsOutput,
    IngredientOutput,
    OrderOutput,
    ProductSummary,
    SalesDataPoint,
    SeriesPoint,
    SoldProduct,
)
from rest_api.models import Ingredient, Order, Product, SalesLedgerRow, Table
from rest_api.services.finance.snapshot import SnapshotCache
from rest_api.services.ledger.sales_ledger import build_ledger_rows


def compute_percent_change(current: float, previous: float) -> float:
    """
    (current - previous) / |previous| * 100.

    With no previous value: 0 when current is also 0, else 100.
    """
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return (current - previous) / abs(previous) * 100


def series_label(index: int, days: int, day_start: datetime) -> str:
    """Relative labels for a week ("D-6" .. "Today"), local dd/mm otherwise."""
    if days == DashboardPeriod.DAYS[DashboardPeriod.WEEK]:
        return "Today" if index == days - 1 else f"D-{days - 1 - index}"
    return day_start.astimezone(local_zone()).strftime("%d/%m")


class _Catalog:
    """Products (with recipes and categories) and ingredients for one pass."""

    def __init__(self, db: Session):
        self.products: dict[int, Product] = {
            product.id: product
            for product in db.scalars(
                select(Product).options(
                    selectinload(Product.recipe_lines), selectinload(Product.category)
                )
            ).all()
        }
        self.ingredients: dict[int, Ingredient] = {
            ingredient.id: ingredient for ingredient in db.scalars(select(Ingredient)).all()
        }

    def category_name(self, product_id: int | None) -> str:
        product = self.products.get(product_id) if product_id is not None else None
        if product is None or product.category is None:
            return UNCATEGORIZED_NAME
        return product.category.name


class ReportService:
    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Helpers
    # =========================================================================

    def _finalized_orders(self, *criteria) -> list[Order]:
        return list(
            self._db.scalars(
                select(Order)
                .where(Order.status == OrderStatus.FINALIZED, *criteria)
                .options(selectinload(Order.lines))
                .order_by(Order.created_at.desc(), Order.id.desc())
            ).all()
        )

    def _low_stock(self) -> list[Ingredient]:
        return list(
            self._db.scalars(
                select(Ingredient)
                .where(Ingredient.current_stock <= Ingredient.minimum_stock)
                .order_by(Ingredient.name)
            ).all()
        )

    @staticmethod
    def _order_profit(order: Order, cache: SnapshotCache, catalog: _Catalog) -> float:
        rows = build_ledger_rows(
            order,
            cache.get(order),
            catalog.products,
            catalog.ingredients,
            sale_date=order.created_at,
        )
        return sum(row.profit for row in rows)

    @staticmethod
    def _revenue(orders: list[Order], cache: SnapshotCache) -> float:
        return sum(cache.get(order).total_revenue for order in orders)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_finalized_orders(self) -> list[Order]:
        """Finalized orders, newest first."""
        return self._finalized_orders()

    def get_sales_history(self, limit: int | None = None) -> list[SalesLedgerRow]:
        """Ledger rows, newest first."""
        query = select(SalesLedgerRow).order_by(
            SalesLedgerRow.sale_date.desc(), SalesLedgerRow.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return list(self._db.scalars(query).all())

    def get_sales_by_product(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[SalesDataPoint]:
        """
        Ledger revenue per product since ``start`` (default: business day start),
        largest first: the top products plus an "Others" bucket for the rest.
        """
        start = ensure_utc(start) or resolve_business_day_start()
        query = select(SalesLedgerRow).where(SalesLedgerRow.sale_date >= start)
        if end is not None:
            query = query.where(SalesLedgerRow.sale_date < ensure_utc(end))

        totals: dict[int, float] = defaultdict(float)
        names: dict[int, str] = {}
        for row in self._db.scalars(query).all():
            totals[row.product_id] += row.total_revenue
            names.setdefault(row.product_id, row.product_name)

        ranked = sorted(totals.items(), key=lambda item: (-item[1], names[item[0]]))
        points = [
            SalesDataPoint(name=names[product_id], value=value)
            for product_id, value in ranked[:TOP_PRODUCTS_LIMIT]
        ]
        rest = ranked[TOP_PRODUCTS_LIMIT:]
        if rest:
            points.append(
                SalesDataPoint(name=OTHERS_BUCKET_NAME, value=sum(value for _, value in rest))
            )
        return points

    def get_dashboard_stats(
        self,
        period: str = DashboardPeriod.WEEK,
        now: datetime | None = None,
    ) -> DashboardStatsOutput:
        """
        KPIs for the window ending at the next business-day start, compared
        with the equal window just before it.
        """
        if period not in DashboardPeriod.DAYS:
            raise ValidationError(f"Unknown dashboard period '{period}'", period=period)
        days = DashboardPeriod.DAYS[period]

        day_start = resolve_business_day_start(now)
        end = shift_days(day_start, 1)
        start = shift_days(end, -days)
        previous_start = shift_days(start, -days)

        window = self._finalized_orders(
            Order.created_at >= previous_start, Order.created_at < end
        )
        current = [o for o in window if ensure_utc(o.created_at) >= start]
        previous = [o for o in window if ensure_utc(o.created_at) < start]
        today = self._finalized_orders(Order.created_at >= day_start)

        cache = SnapshotCache()
        catalog = _Catalog(self._db)

        revenue = self._revenue(current, cache)
        previous_revenue = self._revenue(previous, cache)
        profit = sum(self._order_profit(o, cache, catalog) for o in current)
        previous_profit = sum(self._order_profit(o, cache, catalog) for o in previous)
        covers = sum(o.covers or 0 for o in current)
        previous_covers = sum(o.covers or 0 for o in previous)
        average_ticket = revenue / len(current) if current else 0.0
        previous_average_ticket = previous_revenue / len(previous) if previous else 0.0

        today_revenue = self._revenue(today, cache)
        today_profit = sum(self._order_profit(o, cache, catalog) for o in today)

        series = []
        for index in range(days):
            bucket_start = shift_days(start, index)
            bucket_end = shift_days(bucket_start, 1)
            previous_bucket_start = shift_days(previous_start, index)
            previous_bucket_end = shift_days(previous_bucket_start, 1)
            series.append(
                SeriesPoint(
                    name=series_label(index, days, bucket_start),
                    revenue=self._revenue(
                        [o for o in current if bucket_start <= ensure_utc(o.created_at) < bucket_end],
                        cache,
                    ),
                    previous_revenue=self._revenue(
                        [
                            o
                            for o in previous
                            if previous_bucket_start <= ensure_utc(o.created_at) < previous_bucket_end
                        ],
                        cache,
                    ),
                )
            )

        by_category: dict[str, float] = defaultdict(float)
        for order in current:
            snapshot = cache.get(order)
            for index, line in enumerate(order.lines):
                by_category[catalog.category_name(line.product_id)] += snapshot.net_for(
                    index, line.unit_price * line.quantity
                )

        best_sellers = sorted(
            (p for p in catalog.products.values() if p.is_best_seller),
            key=lambda p: (
                p.best_seller_rank if p.best_seller_rank is not None else float("inf"),
                p.name,
            ),
        )[:BEST_SELLERS_LIMIT]

        tables = self._db.scalars(select(Table).options(selectinload(Table.order))).all()
        orders_in_kitchen = len(
            self._db.scalars(
                select(Order.id).where(
                    Order.status != OrderStatus.FINALIZED,
                    Order.kitchen_status == KitchenStatus.RECEIVED,
                )
            ).all()
        )

        logger.debug(
            "Dashboard computed",
            period=period,
            orders=len(current),
            previous_orders=len(previous),
            snapshots=len(cache),
        )

        return DashboardStatsOutput(
            period=period,
            period_label=DashboardPeriod.LABELS[period],
            period_start=start,
            period_end=end,
            today_revenue=today_revenue,
            today_profit=today_profit,
            today_covers=sum(o.covers or 0 for o in today),
            today_average_ticket=today_revenue / len(today) if today else 0.0,
            revenue=revenue,
            previous_revenue=previous_revenue,
            revenue_change=compute_percent_change(revenue, previous_revenue),
            profit=profit,
            previous_profit=previous_profit,
            profit_change=compute_percent_change(profit, previous_profit),
            covers=covers,
            previous_covers=previous_covers,
            covers_change=compute_percent_change(covers, previous_covers),
            orders=len(current),
            previous_orders=len(previous),
            orders_change=compute_percent_change(len(current), len(previous)),
            average_ticket=average_ticket,
            previous_average_ticket=previous_average_ticket,
            average_ticket_change=compute_percent_change(average_ticket, previous_average_ticket),
            occupied_tables=sum(1 for t in tables if t.status != TableStatus.FREE),
            current_covers=sum(t.covers or 0 for t in tables),
            orders_in_kitchen=orders_in_kitchen,
            low_stock_ingredients=[IngredientOutput.model_validate(i) for i in self._low_stock()],
            revenue_series=series,
            revenue_by_category=[
                SalesDataPoint(name=name, value=value) for name, value in by_category.items()
            ],
            recent_orders=[
                OrderOutput.model_validate(o) for o in current[:RECENT_ORDERS_LIMIT]
            ],
            best_sellers=[ProductSummary.model_validate(p) for p in best_sellers],
        )

    def generate_daily_report(
        self,
        business_day_start: datetime | None = None,
        now: datetime | None = None,
    ) -> DailyReportOutput:
        """
        End-of-day summary of orders finalized since the business-day start.

        An order belongs to the day by its served time, else ready time, else
        creation time. Dine-in orders count their covers; each takeaway or
        online order counts as one client.
        """
        now = ensure_utc(now) or utcnow()
        start = ensure_utc(business_day_start) or resolve_business_day_start(now)

        candidates = self._finalized_orders(
            or_(
                Order.served_at >= start,
                Order.ready_at >= start,
                Order.created_at >= start,
            )
        )
        orders = []
        for order in candidates:
            reference = ensure_utc(order.served_at or order.ready_at or order.created_at)
            if start <= reference <= now:
                orders.append(order)

        cache = SnapshotCache()
        catalog = _Catalog(self._db)

        covers_on_site = sum(o.covers or 0 for o in orders if o.order_type == OrderType.DINE_IN)
        online_clients = sum(1 for o in orders if o.order_type in OrderType.REMOTE)
        revenue = self._revenue(orders, cache)
        total_promotions = sum(cache.get(o).total_discount for o in orders)

        sold: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for order in orders:
            for line in order.lines:
                sold[catalog.category_name(line.product_id)][line.product_name] += line.quantity

        sold_products = [
            CategorySales(
                category_name=category,
                products=[
                    SoldProduct(name=name, quantity=quantity)
                    for name, quantity in sorted(products.items(), key=lambda item: (-item[1], item[0]))
                ],
            )
            for category, products in sorted(
                sold.items(), key=lambda item: (-sum(item[1].values()), item[0])
            )
        ]

        logger.info(
            "Daily report generated",
            business_day_start=start.isoformat(),
            orders=len(orders),
            revenue=round(revenue, 2),
        )

        return DailyReportOutput(
            business_day_start=start,
            generated_at=now,
            orders=len(orders),
            covers_on_site=covers_on_site,
            online_clients=online_clients,
            total_clients=covers_on_site + online_clients,
            revenue=revenue,
            average_ticket=revenue / len(orders) if orders else 0.0,
            total_promotions=total_promotions,
            sold_products=sold_products,
            low_stock_ingredients=[IngredientOutput.model_validate(i) for i in self._low_stock()],
        )
