"""
Table Model: physical seating unit.

The table status is never stored. It is derived on every read from the
kitchen status of the linked order.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import KitchenStatus, TableStatus
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .order import Order


def derive_table_status(order_id: int | None, kitchen_status: str | None) -> str:
    """
    Map the linked order's kitchen status to the displayed table status.

    First match wins:
    no linked order -> free; not_sent (or unknown) -> free; ready -> ready_to_serve;
    served/delivered -> ready_to_pay; anything else -> in_kitchen.
    """
    if order_id is None:
        return TableStatus.FREE
    if kitchen_status is None or kitchen_status == KitchenStatus.NOT_SENT:
        return TableStatus.FREE
    if kitchen_status == KitchenStatus.READY:
        return TableStatus.READY_TO_SERVE
    if kitchen_status in KitchenStatus.HANDED_OVER:
        return TableStatus.READY_TO_PAY
    return TableStatus.IN_KITCHEN


class Table(TimestampMixin, Base):
    """
    Physical table in the dining room.

    Invariant: covers is set only while an order is linked.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)  # "T1", "Terrace-3"
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    covers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("customer_order.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_table_capacity_positive"),
    )

    order: Mapped[Optional["Order"]] = relationship(foreign_keys=[order_id])

    @property
    def kitchen_status(self) -> str | None:
        return self.order.kitchen_status if self.order is not None else None

    @property
    def sent_to_kitchen_at(self) -> datetime | None:
        return self.order.sent_to_kitchen_at if self.order is not None else None

    @property
    def status(self) -> str:
        return derive_table_status(self.order_id, self.kitchen_status)

    def link_order(self, order: "Order", covers: int) -> None:
        self.order = order
        self.order_id = order.id
        self.covers = covers

    def release(self) -> None:
        """Unlink the order and clear covers."""
        self.order = None
        self.order_id = None
        self.covers = None
