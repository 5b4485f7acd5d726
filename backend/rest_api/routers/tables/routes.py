"""
Tables router.
Handles table management and seating.
CLEAN-ARCH: Thin router delegating to TableService and OrderService.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    OrderOutput,
    SeatTableRequest,
    TableCreate,
    TableOutput,
    TableUpdate,
)
from rest_api.services.domain import OrderService, TableService
from rest_api.services.events import ChangeNotifier, get_change_notifier

router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("", response_model=list[TableOutput])
def list_tables(db: Session = Depends(get_db)) -> list[TableOutput]:
    """List tables with their derived status."""
    return TableService(db).get_tables()


@router.post("", response_model=TableOutput, status_code=status.HTTP_201_CREATED)
def create_table(body: TableCreate, db: Session = Depends(get_db)) -> TableOutput:
    return TableService(db).create_table(body)


@router.get("/{table_id}", response_model=TableOutput)
def get_table(table_id: int, db: Session = Depends(get_db)) -> TableOutput:
    return TableService(db).get_table(table_id)


@router.patch("/{table_id}", response_model=TableOutput)
def update_table(
    table_id: int,
    body: TableUpdate,
    db: Session = Depends(get_db),
) -> TableOutput:
    return TableService(db).update_table(table_id, body)


@router.delete("/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_table(table_id: int, db: Session = Depends(get_db)) -> None:
    """Delete a table. 409 while an order is linked."""
    TableService(db).delete_table(table_id)


@router.post("/{table_id}/seat", response_model=OrderOutput)
def seat_table(
    table_id: int,
    body: SeatTableRequest,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> OrderOutput:
    """
    Seat guests at a table.

    Returns the table's open order when it already has one.
    """
    order = OrderService(db, notifier).seat_table(table_id, body.covers)
    return OrderOutput.model_validate(order)
