"""
Applied promotions as tagged variants.

Each promotion kind carries only the fields it needs and exposes
``discount_amount``; the order's total discount defaults to their sum.
Stored on the order as JSON and validated through ``PROMOTIONS_ADAPTER``.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class _AppliedPromotionBase(BaseModel):
    promotion_id: int | str
    name: str


class FixedAmountPromotion(_AppliedPromotionBase):
    kind: Literal["fixed_amount"] = "fixed_amount"
    amount: float = Field(ge=0)

    @property
    def discount_amount(self) -> float:
        return self.amount


class PercentagePromotion(_AppliedPromotionBase):
    kind: Literal["percentage"] = "percentage"
    percent: float = Field(ge=0, le=100)
    base_amount: float = Field(ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)

    @property
    def discount_amount(self) -> float:
        amount = self.base_amount * self.percent / 100
        if self.max_discount_amount:
            amount = min(amount, self.max_discount_amount)
        return amount


class BuyXGetYPromotion(_AppliedPromotionBase):
    """Every ``buy_quantity + get_quantity`` eligible units, ``get_quantity`` are free."""

    kind: Literal["buy_x_get_y"] = "buy_x_get_y"
    buy_quantity: int = Field(ge=1)
    get_quantity: int = Field(ge=1)
    eligible_quantity: int = Field(ge=0)
    free_unit_price: float = Field(ge=0)
    product_ids: list[int] = Field(default_factory=list)

    @property
    def free_units(self) -> int:
        return (self.eligible_quantity // (self.buy_quantity + self.get_quantity)) * self.get_quantity

    @property
    def discount_amount(self) -> float:
        return self.free_units * self.free_unit_price


class FreeShippingPromotion(_AppliedPromotionBase):
    kind: Literal["free_shipping"] = "free_shipping"
    shipping_amount: float = Field(ge=0)

    @property
    def discount_amount(self) -> float:
        return self.shipping_amount


AppliedPromotion = Annotated[
    Union[
        FixedAmountPromotion,
        PercentagePromotion,
        BuyXGetYPromotion,
        FreeShippingPromotion,
    ],
    Field(discriminator="kind"),
]

PROMOTIONS_ADAPTER = TypeAdapter(list[AppliedPromotion])


def load_promotions(raw: list[dict] | None) -> list[AppliedPromotion]:
    return PROMOTIONS_ADAPTER.validate_python(raw or [])


def dump_promotions(promotions: list[AppliedPromotion]) -> list[dict]:
    return PROMOTIONS_ADAPTER.dump_python(promotions, mode="json")


def total_promotion_discount(promotions: list[AppliedPromotion]) -> float:
    return sum(promotion.discount_amount for promotion in promotions)


def resolve_total_discount(
    subtotal: float,
    promotions: list[AppliedPromotion],
    explicit_discount: float | None = None,
) -> float:
    """Explicit discount if given, else the promotions' sum, clamped to [0, subtotal]."""
    discount = explicit_discount if explicit_discount is not None else total_promotion_discount(promotions)
    if subtotal <= 0:
        return 0.0
    return min(max(discount, 0.0), subtotal)
