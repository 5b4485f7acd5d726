"""
Order Domain Service.

The order/table/kitchen orchestrator. Every transition:
1. locks the order row (SELECT ... FOR UPDATE, plus the version column),
2. checks the current state and rejects invalid transitions before writing,
3. applies the status change together with the writes that justify it,
4. commits once, then publishes a change notification.

Finalization runs in two phases: the status change, table release and sales
ledger commit together or not at all; inventory deduction follows in its own
transaction and is best-effort.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import (
    KitchenStatus,
    LineStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
)
from shared.config.logging import orders_logger as logger, kitchen_logger
from shared.infrastructure.db import safe_commit
from shared.utils.business_day import ensure_utc, utcnow
from shared.utils.exceptions import (
    ConsistencyError,
    EmptyOrderError,
    InvalidCoversError,
    InvalidQuantityError,
    InvalidTransitionError,
    LedgerGenerationError,
    NotFoundError,
    OrderAlreadyFinalizedError,
    OrderAlreadySentError,
    OrderNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CustomerOrderRequest,
    KitchenTicketOutput,
    NotificationCountsOutput,
    OrderLineInput,
    OrderLineOutput,
    OrderLineUpdate,
    OrderOutput,
    TakeawayOrdersOutput,
)
from rest_api.models import Ingredient, Order, OrderLine, Product, Table
from rest_api.services.events import (
    ChangeEvent,
    ChangeNotifier,
    EventType,
    get_change_notifier,
)
from rest_api.services.finance.promotions import dump_promotions, resolve_total_discount
from rest_api.services.inventory.consumption import (
    InventoryConsumptionService,
    InventoryDeductionResult,
)
from rest_api.services.ledger.sales_ledger import SalesLedgerService


def validate_covers(covers: object) -> int:
    """Covers must be a positive integer (booleans and floats are rejected)."""
    if isinstance(covers, bool) or not isinstance(covers, int) or covers <= 0:
        raise InvalidCoversError(covers)
    return covers


def recompute_totals(order: Order) -> None:
    """Refresh subtotal, clamped discount and total from the lines."""
    subtotal = sum(max(line.unit_price, 0.0) * max(line.quantity, 0) for line in order.lines)
    order.subtotal = subtotal
    order.total_discount = resolve_total_discount(subtotal, [], order.total_discount)
    order.total = max(subtotal - order.total_discount + (order.shipping_cost or 0.0), 0.0)


class OrderService:
    """
    Domain service for order, table and kitchen transitions.

    Usage:
        service = OrderService(db, notifier)
        order = service.seat_table(table_id=3, covers=4)
        service.add_order_lines(order.id, [OrderLineInput(product_id=7, quantity=2)])
        service.send_to_kitchen(order.id)
    """

    def __init__(self, db: Session, notifier: ChangeNotifier | None = None):
        self._db = db
        self._notifier = notifier if notifier is not None else get_change_notifier()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _lock_order(self, order_id: int) -> Order:
        order = self._db.scalar(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.lines))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _linked_table(self, order: Order) -> Table | None:
        return self._db.scalar(
            select(Table).where(Table.order_id == order.id).with_for_update()
        )

    @staticmethod
    def _touch(order: Order) -> None:
        # Forces an UPDATE of the order row, hence a version bump, even when
        # only its lines changed.
        order.updated_at = utcnow()

    @staticmethod
    def _ensure_open(order: Order) -> None:
        if order.is_finalized:
            raise OrderAlreadyFinalizedError(order.id)

    def _notify(self, event: ChangeEvent, include_notifications: bool = True) -> None:
        try:
            self._notifier.publish_order_change(event, include_notifications=include_notifications)
        except Exception as e:
            logger.warning(
                "Change notification failed",
                event_type=event.event_type.value,
                entity_id=event.entity_id,
                error=str(e),
            )

    def _notify_table_released(self, table_id: int, order_id: int) -> None:
        self._notify(
            ChangeEvent(
                event_type=EventType.TABLE_RELEASED,
                entity_type="table",
                entity_id=table_id,
                payload={"order_id": order_id},
            ),
            include_notifications=False,
        )

    def _build_lines(self, lines: list[OrderLineInput], first_position: int) -> list[OrderLine]:
        """Validate every input line and build the ORM lines, before any write."""
        product_ids = {line.product_id for line in lines if line.product_id is not None}
        products: dict[int, Product] = {}
        if product_ids:
            products = {
                product.id: product
                for product in self._db.scalars(
                    select(Product)
                    .where(Product.id.in_(product_ids))
                    .options(selectinload(Product.recipe_lines))
                ).all()
            }

        built = []
        for offset, data in enumerate(lines):
            if data.quantity is None or data.quantity <= 0:
                raise InvalidQuantityError(data.quantity)

            if data.product_id is not None:
                product = products.get(data.product_id)
                if product is None:
                    raise NotFoundError("Product", data.product_id)
                if not product.is_sellable:
                    raise ValidationError(
                        f"Product '{product.name}' is not sellable (unavailable or without recipe)",
                        product_id=product.id,
                    )
                name, price = product.name, product.sale_price
            else:
                name, price = data.product_name, data.unit_price

            built.append(
                OrderLine(
                    position=first_position + offset,
                    product_id=data.product_id,
                    product_ref=data.product_ref
                    or (str(data.product_id) if data.product_id is not None else None),
                    product_name=name,
                    unit_price=price,
                    quantity=data.quantity,
                    excluded_ingredient_ids=list(data.excluded_ingredient_ids),
                    comment=data.comment,
                    status=LineStatus.WAITING,
                )
            )
        return built

    # =========================================================================
    # Reads
    # =========================================================================

    def get_order(self, order_id: int) -> Order:
        order = self._db.scalar(
            select(Order).where(Order.id == order_id).options(selectinload(Order.lines))
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_kitchen_tickets(self) -> list[KitchenTicketOutput]:
        """
        Sent lines of orders in the kitchen, grouped by send timestamp.

        Lines without their own timestamp fall back to the order's send time,
        then to its creation time.
        """
        orders = self._db.scalars(
            select(Order)
            .where(
                Order.kitchen_status == KitchenStatus.RECEIVED,
                Order.status != OrderStatus.FINALIZED,
            )
            .options(selectinload(Order.lines))
        ).all()

        tickets = []
        for order in orders:
            groups: dict[datetime, list[OrderLine]] = defaultdict(list)
            for line in order.sent_lines:
                sent_at = ensure_utc(line.sent_at or order.sent_to_kitchen_at or order.created_at)
                groups[sent_at].append(line)
            for sent_at, lines in groups.items():
                tickets.append(
                    KitchenTicketOutput(
                        key=f"{order.id}-{sent_at.isoformat()}",
                        order_id=order.id,
                        order_type=order.order_type,
                        table_name=order.table_name,
                        kitchen_status=order.kitchen_status,
                        sent_at=sent_at,
                        lines=[OrderLineOutput.model_validate(line) for line in lines],
                    )
                )
        tickets.sort(key=lambda ticket: (ticket.sent_at, ticket.order_id))
        return tickets

    def get_takeaway_orders(self) -> TakeawayOrdersOutput:
        """Remote orders awaiting validation, and those ready for hand-over."""
        orders = self._db.scalars(
            select(Order)
            .where(
                Order.order_type.in_(OrderType.REMOTE),
                Order.status != OrderStatus.FINALIZED,
            )
            .options(selectinload(Order.lines))
            .order_by(Order.created_at)
        ).all()
        pending = [
            order
            for order in orders
            if order.status == OrderStatus.PENDING_VALIDATION
            and order.kitchen_status == KitchenStatus.NOT_SENT
        ]
        ready = [order for order in orders if order.kitchen_status == KitchenStatus.READY]
        return TakeawayOrdersOutput(
            pending=[OrderOutput.model_validate(order) for order in pending],
            ready=[OrderOutput.model_validate(order) for order in ready],
        )

    def get_notification_counts(self) -> NotificationCountsOutput:
        def count(*criteria) -> int:
            return self._db.scalar(select(func.count(Order.id)).where(*criteria)) or 0

        not_finalized = Order.status != OrderStatus.FINALIZED
        remote = Order.order_type.in_(OrderType.REMOTE)
        low_stock = self._db.scalar(
            select(func.count(Ingredient.id)).where(
                Ingredient.current_stock <= Ingredient.minimum_stock
            )
        ) or 0

        return NotificationCountsOutput(
            pending_takeaway=count(
                remote,
                Order.status == OrderStatus.PENDING_VALIDATION,
                Order.kitchen_status == KitchenStatus.NOT_SENT,
            ),
            ready_takeaway=count(remote, not_finalized, Order.kitchen_status == KitchenStatus.READY),
            kitchen_orders=count(not_finalized, Order.kitchen_status == KitchenStatus.RECEIVED),
            low_stock_ingredients=low_stock,
            ready_for_service=count(
                Order.order_type == OrderType.DINE_IN,
                not_finalized,
                Order.kitchen_status == KitchenStatus.READY,
            ),
        )

    # =========================================================================
    # Seating and lines
    # =========================================================================

    def seat_table(self, table_id: int, covers: object) -> Order:
        """
        Open (or return) the order linked to a table.

        A table that already has an order returns it unchanged. Otherwise a
        dine-in order is created with kitchen status not_sent and linked to
        the table with its covers.

        Raises:
            TableNotFoundError: unknown table
            InvalidCoversError: covers is not a positive integer
        """
        covers = validate_covers(covers)
        table = self._db.scalar(select(Table).where(Table.id == table_id).with_for_update())
        if table is None:
            raise TableNotFoundError(table_id)
        if table.order_id is not None:
            return self.get_order(table.order_id)

        order = Order(
            order_type=OrderType.DINE_IN,
            table_id=table.id,
            table_name=table.name,
            covers=covers,
            status=OrderStatus.IN_PROGRESS,
            kitchen_status=KitchenStatus.NOT_SENT,
            payment_status=PaymentStatus.UNPAID,
            total=0.0,
        )
        self._db.add(order)
        self._db.flush()
        table.link_order(order, covers)
        safe_commit(self._db, operation="seat table", table_id=table_id)

        logger.info("Table seated", table_id=table_id, order_id=order.id, covers=covers)
        self._notify(ChangeEvent.for_order(EventType.TABLE_SEATED, order.id, table_id=table_id))
        return order

    def add_order_lines(self, order_id: int, lines: list[OrderLineInput]) -> Order:
        """Append waiting lines, snapshotting catalog name and price."""
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if not lines:
            raise EmptyOrderError(order_id)

        next_position = max((line.position for line in order.lines), default=-1) + 1
        for line in self._build_lines(lines, next_position):
            order.lines.append(line)
        recompute_totals(order)
        self._touch(order)
        safe_commit(self._db, operation="add order lines", entity_id=order_id)

        logger.info("Order lines added", order_id=order_id, count=len(lines))
        self._notify(
            ChangeEvent.for_order(EventType.ORDER_LINES_CHANGED, order_id),
            include_notifications=False,
        )
        return order

    def update_order_lines(self, order_id: int, lines: list[OrderLineUpdate]) -> Order:
        """
        Replace the line set of an order.

        Waiting lines may be edited, removed or added. Sent lines must be
        passed back unchanged; editing or dropping one is a consistency error.
        """
        order = self._lock_order(order_id)
        self._ensure_open(order)

        existing = {line.id: line for line in order.lines}
        requested_ids = {data.id for data in lines if data.id is not None}
        unknown = requested_ids - existing.keys()
        if unknown:
            raise ValidationError(
                f"Lines {sorted(unknown)} do not belong to order {order_id}",
                order_id=order_id,
            )

        for line in order.lines:
            if line.is_waiting:
                continue
            if line.id not in requested_ids:
                raise OrderAlreadySentError(order_id, line_id=line.id)
            data = next(d for d in lines if d.id == line.id)
            if (
                data.quantity != line.quantity
                or (data.comment or None) != (line.comment or None)
                or sorted(data.excluded_ingredient_ids) != sorted(line.excluded_ingredient_ids or [])
            ):
                raise ConsistencyError(
                    f"Line {line.id} was already sent to the kitchen and is read-only",
                    order_id=order_id,
                    line_id=line.id,
                )

        new_inputs = [data for data in lines if data.id is None]
        new_lines = iter(self._build_lines(new_inputs, 0))
        for data in lines:
            if data.id is not None and existing[data.id].is_waiting:
                if data.quantity is None or data.quantity <= 0:
                    raise InvalidQuantityError(data.quantity, line_id=data.id)

        kept: list[OrderLine] = []
        for position, data in enumerate(lines):
            if data.id is None:
                line = next(new_lines)
            else:
                line = existing[data.id]
                if line.is_waiting:
                    line.quantity = data.quantity
                    line.comment = data.comment
                    line.excluded_ingredient_ids = list(data.excluded_ingredient_ids)
            line.position = position
            kept.append(line)

        order.lines = kept
        recompute_totals(order)
        self._touch(order)
        safe_commit(self._db, operation="update order lines", entity_id=order_id)

        logger.info("Order lines replaced", order_id=order_id, count=len(kept))
        self._notify(
            ChangeEvent.for_order(EventType.ORDER_LINES_CHANGED, order_id),
            include_notifications=False,
        )
        return order

    def submit_customer_order(self, request: CustomerOrderRequest) -> Order:
        """Takeaway/online checkout, waiting for staff validation."""
        if not request.lines:
            raise EmptyOrderError()

        lines = self._build_lines(request.lines, 0)
        order = Order(
            order_type=request.order_type,
            covers=1,
            status=OrderStatus.PENDING_VALIDATION,
            kitchen_status=KitchenStatus.NOT_SENT,
            payment_status=PaymentStatus.UNPAID,
            client_name=request.client_name,
            client_phone=request.client_phone,
            client_address=request.client_address,
            promo_code=request.promo_code,
            applied_promotions=dump_promotions(request.applied_promotions),
            shipping_cost=request.shipping_cost,
            lines=lines,
        )
        subtotal = sum(line.unit_price * line.quantity for line in lines)
        order.total_discount = resolve_total_discount(
            subtotal, request.applied_promotions, request.total_discount
        )
        recompute_totals(order)
        self._db.add(order)
        safe_commit(self._db, operation="submit customer order")

        logger.info(
            "Customer order submitted",
            order_id=order.id,
            order_type=order.order_type,
            total=order.total,
            discount=order.total_discount,
        )
        self._notify(ChangeEvent.for_order(EventType.ORDER_CREATED, order.id))
        return order

    # =========================================================================
    # Kitchen transitions
    # =========================================================================

    def send_to_kitchen(self, order_id: int, line_ids: list[int] | None = None) -> Order:
        """
        Send waiting lines (all, or the selected ones) to the kitchen.

        All sent lines share one timestamp. The first send moves the order to
        kitchen status received and stamps the send time. With nothing to
        send the order is returned unchanged.
        """
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if order.status == OrderStatus.PENDING_VALIDATION:
            raise InvalidTransitionError(
                "Order", order.status, "sent_to_kitchen", order_id=order_id
            )

        selected = set(line_ids) if line_ids is not None else None
        to_send = [
            line for line in order.waiting_lines if selected is None or line.id in selected
        ]
        if not to_send:
            return order

        now = utcnow()
        for line in to_send:
            line.status = LineStatus.SENT_TO_KITCHEN
            line.sent_at = now
        if order.kitchen_status == KitchenStatus.NOT_SENT:
            order.kitchen_status = KitchenStatus.RECEIVED
            order.sent_to_kitchen_at = now
        self._touch(order)
        safe_commit(self._db, operation="send to kitchen", entity_id=order_id)

        kitchen_logger.info(
            "Lines sent to kitchen",
            order_id=order_id,
            lines=len(to_send),
            kitchen_status=order.kitchen_status,
        )
        self._notify(ChangeEvent.for_order(EventType.ORDER_SENT_TO_KITCHEN, order_id))
        return order

    def _advance_kitchen(self, order: Order, target: str) -> None:
        current = order.kitchen_status
        if (
            current == KitchenStatus.NOT_SENT
            or KitchenStatus.RANK[target] <= KitchenStatus.RANK.get(current, 0)
        ):
            raise InvalidTransitionError("Order", current, target, order_id=order.id)
        order.kitchen_status = target

    def mark_ready(self, order_id: int) -> Order:
        order = self._lock_order(order_id)
        self._ensure_open(order)
        self._advance_kitchen(order, KitchenStatus.READY)
        order.ready_at = utcnow()
        safe_commit(self._db, operation="mark ready", entity_id=order_id)

        kitchen_logger.info("Order ready", order_id=order_id)
        self._notify(ChangeEvent.for_order(EventType.ORDER_READY, order_id))
        return order

    def mark_served(self, order_id: int) -> Order:
        """Dine-in hand-over; the table becomes ready to pay."""
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if order.order_type != OrderType.DINE_IN:
            raise InvalidTransitionError(
                "Order", order.order_type, KitchenStatus.SERVED, order_id=order_id
            )
        self._advance_kitchen(order, KitchenStatus.SERVED)
        order.served_at = utcnow()
        safe_commit(self._db, operation="mark served", entity_id=order_id)

        logger.info("Order served", order_id=order_id)
        self._notify(ChangeEvent.for_order(EventType.ORDER_SERVED, order_id))
        return order

    def validate_takeaway_order(
        self, order_id: int, payment_method: str | None = None
    ) -> Order:
        """
        Staff validation of a remote order: payment captured and every line
        sent to the kitchen.
        """
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if (
            order.order_type not in OrderType.REMOTE
            or order.status != OrderStatus.PENDING_VALIDATION
        ):
            raise InvalidTransitionError(
                "Order", order.status, OrderStatus.IN_PROGRESS, order_id=order_id
            )
        if not order.lines:
            raise EmptyOrderError(order_id)

        now = utcnow()
        order.status = OrderStatus.IN_PROGRESS
        order.kitchen_status = KitchenStatus.RECEIVED
        order.payment_status = PaymentStatus.PAID
        order.payment_method = payment_method or PaymentMethod.CARD
        order.sent_to_kitchen_at = now
        for line in order.lines:
            line.status = LineStatus.SENT_TO_KITCHEN
            line.sent_at = now
        safe_commit(self._db, operation="validate takeaway order", entity_id=order_id)

        logger.info("Takeaway order validated", order_id=order_id)
        self._notify(ChangeEvent.for_order(EventType.ORDER_VALIDATED, order_id))
        return order

    # =========================================================================
    # Finalization
    # =========================================================================

    def _finalize_locked(
        self,
        order: Order,
        payment_method: str | None,
        event_type: EventType,
    ) -> tuple[Order, InventoryDeductionResult]:
        """Phase 1 (status, table, ledger) then phase 2 (inventory)."""
        if not order.lines:
            raise EmptyOrderError(order.id)

        order.status = OrderStatus.FINALIZED
        order.payment_status = PaymentStatus.PAID
        order.payment_method = payment_method or order.payment_method or PaymentMethod.CASH
        if order.finalized_at is None:
            order.finalized_at = utcnow()

        table = self._linked_table(order)
        if table is not None:
            table.release()

        try:
            SalesLedgerService(self._db).generate_for_order(order)
        except LedgerGenerationError:
            self._db.rollback()
            raise
        safe_commit(self._db, operation="finalize order", entity_id=order.id)
        logger.info(
            "Order finalized",
            order_id=order.id,
            profit=order.profit,
            payment_method=order.payment_method,
            released_table_id=table.id if table is not None else None,
        )

        inventory = InventoryConsumptionService(self._db).deduct_for_order(order)

        self._notify(
            ChangeEvent.for_order(
                event_type,
                order.id,
                inventory_failed=inventory.failed,
            )
        )
        if table is not None:
            self._notify_table_released(table.id, order.id)
        return order, inventory

    def finalize_order(
        self, order_id: int, payment_method: str | None = None
    ) -> tuple[Order, InventoryDeductionResult]:
        """
        Capture payment and close the order.

        Raises:
            OrderAlreadyFinalizedError: double finalization
            InvalidTransitionError: remote order still awaiting validation
            EmptyOrderError: nothing to record in the ledger
            LedgerGenerationError: the ledger could not be written (rolled back)
        """
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if order.status == OrderStatus.PENDING_VALIDATION:
            raise InvalidTransitionError(
                "Order", order.status, OrderStatus.FINALIZED, order_id=order_id
            )
        return self._finalize_locked(order, payment_method, EventType.ORDER_FINALIZED)

    def mark_delivered(
        self, order_id: int, payment_method: str | None = None
    ) -> tuple[Order, InventoryDeductionResult]:
        """Hand a takeaway/online order over and finalize it."""
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if order.order_type not in OrderType.REMOTE:
            raise InvalidTransitionError(
                "Order", order.order_type, KitchenStatus.DELIVERED, order_id=order_id
            )
        self._advance_kitchen(order, KitchenStatus.DELIVERED)
        order.served_at = utcnow()
        return self._finalize_locked(
            order,
            payment_method or order.payment_method or PaymentMethod.TRANSFER,
            EventType.ORDER_DELIVERED,
        )

    def cancel_unsent_order(self, order_id: int) -> None:
        """
        Delete an order nothing of which reached the kitchen, freeing its table.

        Raises:
            OrderAlreadySentError: kitchen status moved or a line was sent
        """
        order = self._lock_order(order_id)
        self._ensure_open(order)
        if order.kitchen_status != KitchenStatus.NOT_SENT or any(
            not line.is_waiting for line in order.lines
        ):
            raise OrderAlreadySentError(order_id)

        table = self._linked_table(order)
        if table is not None:
            table.release()
        self._db.delete(order)
        safe_commit(self._db, operation="cancel unsent order", entity_id=order_id)

        logger.info(
            "Unsent order canceled",
            order_id=order_id,
            table_id=table.id if table is not None else None,
        )
        self._notify(ChangeEvent.for_order(EventType.ORDER_CANCELED, order_id))
        if table is not None:
            self._notify_table_released(table.id, order_id)
