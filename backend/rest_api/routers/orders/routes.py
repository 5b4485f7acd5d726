"""
Orders router.
CLEAN-ARCH: Thin router delegating to OrderService.

Static paths (/finalized, /takeaway, /notifications, /checkout) are declared
before /{order_id} so they are not captured by it.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    AddLinesRequest,
    CustomerOrderRequest,
    FinalizeOutput,
    InventoryDeductionOutput,
    NotificationCountsOutput,
    OrderOutput,
    PaymentRequest,
    ReplaceLinesRequest,
    SendToKitchenRequest,
    TakeawayOrdersOutput,
)
from rest_api.models import Order
from rest_api.services.domain import OrderService
from rest_api.services.events import ChangeNotifier, get_change_notifier
from rest_api.services.inventory import InventoryDeductionResult
from rest_api.services.reporting import ReportService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _get_service(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_change_notifier),
) -> OrderService:
    return OrderService(db, notifier)


def _finalize_output(result: tuple[Order, InventoryDeductionResult]) -> FinalizeOutput:
    order, inventory = result
    return FinalizeOutput(
        order=OrderOutput.model_validate(order),
        inventory=InventoryDeductionOutput.model_validate(inventory),
    )


# =============================================================================
# Queries
# =============================================================================


@router.get("/finalized", response_model=list[OrderOutput])
def list_finalized_orders(db: Session = Depends(get_db)) -> list[OrderOutput]:
    """Finalized orders, newest first."""
    return [OrderOutput.model_validate(o) for o in ReportService(db).get_finalized_orders()]


@router.get("/takeaway", response_model=TakeawayOrdersOutput)
def list_takeaway_orders(service: OrderService = Depends(_get_service)) -> TakeawayOrdersOutput:
    """Remote orders awaiting validation and remote orders ready for pickup."""
    return service.get_takeaway_orders()


@router.get("/notifications", response_model=NotificationCountsOutput)
def get_notification_counts(
    service: OrderService = Depends(_get_service),
) -> NotificationCountsOutput:
    """Badge counters for the staff screens."""
    return service.get_notification_counts()


@router.post("/checkout", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def submit_customer_order(
    body: CustomerOrderRequest,
    service: OrderService = Depends(_get_service),
) -> OrderOutput:
    """Takeaway or online checkout. The order waits for staff validation."""
    return OrderOutput.model_validate(service.submit_customer_order(body))


@router.get("/{order_id}", response_model=OrderOutput)
def get_order(order_id: int, service: OrderService = Depends(_get_service)) -> OrderOutput:
    return OrderOutput.model_validate(service.get_order(order_id))


# =============================================================================
# Lines
# =============================================================================


@router.post("/{order_id}/lines", response_model=OrderOutput)
def add_order_lines(
    order_id: int,
    body: AddLinesRequest,
    service: OrderService = Depends(_get_service),
) -> OrderOutput:
    return OrderOutput.model_validate(service.add_order_lines(order_id, body.lines))


@router.put("/{order_id}/lines", response_model=OrderOutput)
def replace_order_lines(
    order_id: int,
    body: ReplaceLinesRequest,
    service: OrderService = Depends(_get_service),
) -> OrderOutput:
    """
    Replace the line set. Lines already sent to the kitchen must be kept
    unchanged; waiting lines may be edited or dropped.
    """
    return OrderOutput.model_validate(service.update_order_lines(order_id, body.lines))


# =============================================================================
# Kitchen flow
# =============================================================================


@router.post("/{order_id}/send-to-kitchen", response_model=OrderOutput)
def send_to_kitchen(
    order_id: int,
    body: SendToKitchenRequest | None = None,
    service: OrderService = Depends(_get_service),
) -> OrderOutput:
    line_ids = body.line_ids if body is not None else None
    return OrderOutput.model_validate(service.send_to_kitchen(order_id, line_ids))


@router.post("/{order_id}/ready", response_model=OrderOutput)
def mark_ready(order_id: int, service: OrderService = Depends(_get_service)) -> OrderOutput:
    return OrderOutput.model_validate(service.mark_ready(order_id))


@router.post("/{order_id}/served", response_model=OrderOutput)
def mark_served(order_id: int, service: OrderService = Depends(_get_service)) -> OrderOutput:
    return OrderOutput.model_validate(service.mark_served(order_id))


@router.post("/{order_id}/validate", response_model=OrderOutput)
def validate_takeaway_order(
    order_id: int,
    body: PaymentRequest | None = None,
    service: OrderService = Depends(_get_service),
) -> OrderOutput:
    payment_method = body.payment_method if body is not None else None
    return OrderOutput.model_validate(service.validate_takeaway_order(order_id, payment_method))


# =============================================================================
# Closing
# =============================================================================


@router.post("/{order_id}/finalize", response_model=FinalizeOutput)
def finalize_order(
    order_id: int,
    body: PaymentRequest | None = None,
    service: OrderService = Depends(_get_service),
) -> FinalizeOutput:
    """
    Capture payment, release the table and write the sales ledger.

    Inventory deduction is reported in the response; its failure does not
    undo the finalization.
    """
    payment_method = body.payment_method if body is not None else None
    return _finalize_output(service.finalize_order(order_id, payment_method))


@router.post("/{order_id}/delivered", response_model=FinalizeOutput)
def mark_delivered(
    order_id: int,
    body: PaymentRequest | None = None,
    service: OrderService = Depends(_get_service),
) -> FinalizeOutput:
    payment_method = body.payment_method if body is not None else None
    return _finalize_output(service.mark_delivered(order_id, payment_method))


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_unsent_order(order_id: int, service: OrderService = Depends(_get_service)) -> None:
    """Delete an order nothing of which was sent to the kitchen."""
    service.cancel_unsent_order(order_id)
