"""
Ingredients router.
Stock levels and resupply.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import IngredientOutput, ResupplyOutput, ResupplyRequest
from rest_api.services.domain import IngredientService
from rest_api.services.events import ChangeNotifier, get_change_notifier

router = APIRouter(prefix="/api/ingredients", tags=["ingredients"])


@router.get("", response_model=list[IngredientOutput])
def list_ingredients(db: Session = Depends(get_db)) -> list[IngredientOutput]:
    return IngredientService(db).list_ingredients()


@router.get("/low-stock", response_model=list[IngredientOutput])
def list_low_stock_ingredients(db: Session = Depends(get_db)) -> list[IngredientOutput]:
    """Ingredients at or below their minimum stock."""
    return [
        IngredientOutput.model_validate(ingredient)
        for ingredient in IngredientService(db).get_low_stock_ingredients()
    ]


@router.post(
    "/{ingredient_id}/resupply",
    response_model=ResupplyOutput,
    status_code=status.HTTP_201_CREATED,
)
def resupply_ingredient(
    ingredient_id: int,
    body: ResupplyRequest,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> ResupplyOutput:
    """Record a purchase and update the weighted average unit price."""
    return IngredientService(db, notifier).resupply_ingredient(
        ingredient_id, body.quantity, body.unit_price
    )
