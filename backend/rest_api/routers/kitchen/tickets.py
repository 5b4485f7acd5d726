"""
Kitchen Ticket router.
CLEAN-ARCH: Thin router delegating to OrderService.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import KitchenTicketOutput
from rest_api.services.domain import OrderService
from rest_api.services.events import ChangeNotifier, get_change_notifier

router = APIRouter(prefix="/api/kitchen", tags=["kitchen"])


@router.get("/tickets", response_model=list[KitchenTicketOutput])
def list_kitchen_tickets(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> list[KitchenTicketOutput]:
    """
    Open tickets, oldest first: one per order and send-to-kitchen batch.
    """
    return OrderService(db, notifier).get_kitchen_tickets()
