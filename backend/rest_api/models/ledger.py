"""
Sales Ledger Model.

One immutable fact row per order line with a catalog product, written at
finalization. The set of rows for an order is only ever replaced as a whole.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.utils.business_day import ensure_utc

from .base import Base, BigIntPK


class SalesLedgerRow(Base):
    __tablename__ = "sales_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False
    )
    line_position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    # Text so the "unknown" bucket fits next to real category ids
    category_id: Mapped[str] = mapped_column(Text, nullable=False)
    category_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_revenue: Mapped[float] = mapped_column(Float, nullable=False)
    total_revenue: Mapped[float] = mapped_column(Float, nullable=False)
    unit_cost: Mapped[float] = mapped_column(Float, nullable=False)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    profit: Mapped[float] = mapped_column(Float, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sale_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sales_ledger_order", "order_id"),
        Index("ix_sales_ledger_sale_date", "sale_date"),
    )

    def as_fact(self) -> tuple:
        """Comparable value tuple, excluding the surrogate id."""
        return (
            self.order_id,
            self.line_position,
            self.product_id,
            self.product_name,
            self.category_id,
            self.category_name,
            self.quantity,
            self.unit_revenue,
            self.total_revenue,
            self.unit_cost,
            self.total_cost,
            self.profit,
            self.payment_method,
            ensure_utc(self.sale_date),
        )
