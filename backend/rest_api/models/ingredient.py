"""
Ingredient Models: Ingredient, IngredientPurchase.

Stock and unit price are expressed in the ingredient's storage unit
(kg, g, L, ml or piece).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import IngredientUnit
from shared.utils.business_day import utcnow
from .base import Base, BigIntPK, TimestampMixin


class Ingredient(TimestampMixin, Base):
    """A stocked input consumed by recipes."""

    __tablename__ = "ingredient"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(Text, default=IngredientUnit.PIECE, nullable=False)
    minimum_stock: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    current_stock: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    # Weighted average purchase price per storage unit
    unit_price: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_ingredient_stock_non_negative"),
    )

    purchases: Mapped[list["IngredientPurchase"]] = relationship(
        back_populates="ingredient", cascade="all, delete-orphan"
    )

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.minimum_stock


class IngredientPurchase(Base):
    """A resupply record."""

    __tablename__ = "ingredient_purchase"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    ingredient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ingredient.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    total_price: Mapped[float] = mapped_column(Float, nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    ingredient: Mapped["Ingredient"] = relationship(back_populates="purchases")
