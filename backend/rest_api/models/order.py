"""
Order Models: Order, OrderLine.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import (
    KitchenStatus,
    LineStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product


class Order(TimestampMixin, Base):
    """
    A customer's transaction.

    Two one-way state machines live on the order:
    - status: pending_validation -> in_progress -> finalized
    - kitchen_status: not_sent -> received -> ready -> served/delivered

    Every UPDATE of the row bumps ``version``; a concurrent writer holding a
    stale version gets StaleDataError at flush time.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_type: Mapped[str] = mapped_column(Text, default=OrderType.DINE_IN, nullable=False)
    # Snapshot of the seating; the live link is restaurant_table.order_id
    table_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    table_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    covers: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    status: Mapped[str] = mapped_column(
        Text, default=OrderStatus.IN_PROGRESS, nullable=False, index=True
    )
    kitchen_status: Mapped[str] = mapped_column(
        Text, default=KitchenStatus.NOT_SENT, nullable=False, index=True
    )
    sent_to_kitchen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ready_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    served_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    # Stamped once by finalization; the ledger sale date when never served
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    payment_status: Mapped[str] = mapped_column(
        Text, default=PaymentStatus.UNPAID, nullable=False
    )
    payment_method: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subtotal: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_discount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    shipping_cost: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    promo_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Serialized AppliedPromotion variants (see services.finance.promotions)
    applied_promotions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )

    client_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Authoritative total when set; None means "derive from the lines"
    total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Only meaningful after finalization, written by the sales ledger
    profit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_order_status_kitchen", "status", "kitchen_status"),
        CheckConstraint("covers >= 0", name="ck_order_covers_non_negative"),
    )

    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == OrderStatus.FINALIZED

    @property
    def waiting_lines(self) -> list["OrderLine"]:
        return [line for line in self.lines if line.status == LineStatus.WAITING]

    @property
    def sent_lines(self) -> list["OrderLine"]:
        return [line for line in self.lines if line.status == LineStatus.SENT_TO_KITCHEN]


class OrderLine(Base):
    """
    One product entry of an order.

    product_name and unit_price are snapshots taken when the line is created,
    immune to later catalog edits. Once sent to the kitchen only ``status``
    may change.
    """

    __tablename__ = "order_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Null for ad hoc / legacy items that are not in the catalog
    product_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("product.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    excluded_ingredient_ids: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, default=LineStatus.WAITING, nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_line_quantity_positive"),
        Index("ix_order_line_status", "status"),
    )

    order: Mapped["Order"] = relationship(back_populates="lines")
    product: Mapped[Optional["Product"]] = relationship()

    @property
    def is_waiting(self) -> bool:
        return self.status == LineStatus.WAITING
