"""
Catalog Models: Category, Product, RecipeLine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .ingredient import Ingredient


class Category(Base):
    """Menu category ("Burgers", "Drinks")."""

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    products: Mapped[list["Product"]] = relationship(back_populates="category")


class Product(TimestampMixin, Base):
    """
    A menu item and its bill of materials.

    A product is sellable only with at least one recipe line.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sale_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("category.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_best_seller: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    best_seller_rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
    recipe_lines: Mapped[list["RecipeLine"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )

    @property
    def is_sellable(self) -> bool:
        return self.is_available and len(self.recipe_lines) > 0


class RecipeLine(Base):
    """One recipe entry: an ingredient and the quantity consumed, in usage units."""

    __tablename__ = "recipe_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ingredient.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)  # g, ml or pieces

    product: Mapped["Product"] = relationship(back_populates="recipe_lines")
    ingredient: Mapped["Ingredient"] = relationship()
