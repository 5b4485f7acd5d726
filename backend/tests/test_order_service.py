"""
Tests for the order/table/kitchen orchestrator.
"""

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from shared.infrastructure.db import safe_commit
from shared.utils.business_day import ensure_utc
from shared.utils.exceptions import (
    ConcurrentUpdateError,
    ConsistencyError,
    EmptyOrderError,
    InvalidCoversError,
    InvalidQuantityError,
    InvalidTransitionError,
    LedgerGenerationError,
    NotFoundError,
    OrderAlreadyFinalizedError,
    OrderAlreadySentError,
    ValidationError,
)
from shared.utils.schemas import (
    CustomerOrderRequest,
    OrderLineInput,
    OrderLineUpdate,
)
from rest_api.models import Base, Ingredient, Order, Product, RecipeLine, SalesLedgerRow, Table
from rest_api.services.domain import OrderService, TableService
from rest_api.services.events import EventType, LocalChangeNotifier
from rest_api.services.inventory.consumption import InventoryConsumptionService
from rest_api.services.ledger import SalesLedgerService


@pytest.fixture
def service(db_session, notifier):
    return OrderService(db_session, notifier)


def _table_status(db_session, table_id):
    return TableService(db_session).get_table(table_id).status


def _seat_with_margherita(service, seed_tables, seed_catalog, quantity=1):
    order = service.seat_table(seed_tables.t1.id, covers=4)
    service.add_order_lines(
        order.id, [OrderLineInput(product_id=seed_catalog.margherita.id, quantity=quantity)]
    )
    return order


class TestSeating:
    def test_seat_then_send_moves_table_from_free_to_in_kitchen(
        self, service, db_session, seed_tables, seed_catalog
    ):
        order = service.seat_table(seed_tables.t1.id, covers=4)

        assert order.kitchen_status == "not_sent"
        assert order.covers == 4
        assert order.table_name == "T1"
        assert _table_status(db_session, seed_tables.t1.id) == "free"

        service.add_order_lines(
            order.id, [OrderLineInput(product_id=seed_catalog.margherita.id, quantity=1)]
        )
        assert _table_status(db_session, seed_tables.t1.id) == "free"

        service.send_to_kitchen(order.id)
        assert _table_status(db_session, seed_tables.t1.id) == "in_kitchen"

    def test_seating_occupied_table_returns_existing_order(self, service, seed_tables):
        first = service.seat_table(seed_tables.t1.id, covers=2)
        second = service.seat_table(seed_tables.t1.id, covers=6)

        assert second.id == first.id
        assert second.covers == 2

    @pytest.mark.parametrize("covers", [0, "x"])
    def test_invalid_covers_rejected_on_occupied_table(self, service, seed_tables, covers):
        first = service.seat_table(seed_tables.t1.id, covers=2)

        with pytest.raises(InvalidCoversError):
            service.seat_table(seed_tables.t1.id, covers=covers)

        assert service.get_order(first.id).covers == 2

    @pytest.mark.parametrize("covers", [0, -1, None, "4", 2.5, True])
    def test_invalid_covers_rejected_before_write(self, service, db_session, seed_tables, covers):
        with pytest.raises(InvalidCoversError):
            service.seat_table(seed_tables.t1.id, covers=covers)

        assert db_session.query(Order).count() == 0
        assert _table_status(db_session, seed_tables.t1.id) == "free"

    def test_unknown_table(self, service, db_session):
        with pytest.raises(NotFoundError):
            service.seat_table(999, covers=2)

    def test_seat_publishes_change(self, service, notifier, seed_tables):
        order = service.seat_table(seed_tables.t1.id, covers=2)

        events = notifier.events_on("orders_updated")
        assert events[-1].event_type == EventType.TABLE_SEATED
        assert events[-1].entity_id == order.id
        assert notifier.events_on("notifications_updated")


class TestLines:
    def test_catalog_snapshot_taken(self, service, db_session, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog, quantity=2)

        seed_catalog.margherita.sale_price = 99.0
        db_session.commit()

        order = service.get_order(order.id)
        assert order.lines[0].unit_price == 12.0
        assert order.lines[0].product_name == "Margherita"
        assert order.subtotal == 24.0
        assert order.total == 24.0

    def test_ad_hoc_line(self, service, seed_tables):
        order = service.seat_table(seed_tables.t1.id, covers=2)
        order = service.add_order_lines(
            order.id, [OrderLineInput(product_name="Corkage", unit_price=8.0, quantity=1)]
        )
        assert order.lines[0].product_id is None
        assert order.total == 8.0

    def test_unavailable_product_rejected(self, service, seed_tables, seed_catalog):
        order = service.seat_table(seed_tables.t1.id, covers=2)
        with pytest.raises(ValidationError):
            service.add_order_lines(
                order.id, [OrderLineInput(product_id=seed_catalog.calzone.id, quantity=1)]
            )

    def test_non_positive_quantity_rejected(self, service, seed_tables, seed_catalog):
        order = service.seat_table(seed_tables.t1.id, covers=2)
        with pytest.raises(InvalidQuantityError):
            service.add_order_lines(
                order.id, [OrderLineInput(product_id=seed_catalog.cola.id, quantity=0)]
            )

    def test_waiting_line_editable(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        line = order.lines[0]

        order = service.update_order_lines(
            order.id,
            [
                OrderLineUpdate(id=line.id, product_id=line.product_id, quantity=3, comment="well done"),
                OrderLineUpdate(product_id=seed_catalog.cola.id, quantity=2),
            ],
        )

        assert [l.quantity for l in order.lines] == [3, 2]
        assert order.lines[0].comment == "well done"
        assert order.subtotal == 42.0

    def test_sent_line_is_read_only(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(order.id)
        line = order.lines[0]

        with pytest.raises(ConsistencyError):
            service.update_order_lines(
                order.id, [OrderLineUpdate(id=line.id, product_id=line.product_id, quantity=5)]
            )

        with pytest.raises(OrderAlreadySentError):
            service.update_order_lines(order.id, [])


class TestKitchenFlow:
    def test_full_dine_in_flow(self, service, db_session, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)

        order = service.send_to_kitchen(order.id)
        assert order.kitchen_status == "received"
        assert order.sent_to_kitchen_at is not None
        assert all(line.status == "sent_to_kitchen" for line in order.lines)

        service.mark_ready(order.id)
        assert _table_status(db_session, seed_tables.t1.id) == "ready_to_serve"

        service.mark_served(order.id)
        assert _table_status(db_session, seed_tables.t1.id) == "ready_to_pay"

    def test_second_send_keeps_first_timestamp(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        order = service.send_to_kitchen(order.id)
        first_sent = order.sent_to_kitchen_at

        service.add_order_lines(
            order.id, [OrderLineInput(product_id=seed_catalog.cola.id, quantity=1)]
        )
        order = service.send_to_kitchen(order.id)

        assert ensure_utc(order.sent_to_kitchen_at) == ensure_utc(first_sent)
        assert order.kitchen_status == "received"
        assert all(line.status == "sent_to_kitchen" for line in order.lines)

    def test_send_selected_lines_only(self, service, seed_tables, seed_catalog):
        order = service.seat_table(seed_tables.t1.id, covers=2)
        order = service.add_order_lines(
            order.id,
            [
                OrderLineInput(product_id=seed_catalog.bruschetta.id, quantity=1),
                OrderLineInput(product_id=seed_catalog.margherita.id, quantity=1),
            ],
        )

        order = service.send_to_kitchen(order.id, line_ids=[order.lines[0].id])

        assert [line.status for line in order.lines] == ["sent_to_kitchen", "waiting"]

    def test_kitchen_tickets_grouped_by_send(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(order.id)
        service.add_order_lines(
            order.id, [OrderLineInput(product_id=seed_catalog.cola.id, quantity=2)]
        )
        service.send_to_kitchen(order.id)

        tickets = service.get_kitchen_tickets()

        assert len(tickets) == 2
        assert {ticket.order_id for ticket in tickets} == {order.id}
        assert tickets[0].sent_at <= tickets[1].sent_at

    def test_ready_before_send_rejected(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        with pytest.raises(InvalidTransitionError):
            service.mark_ready(order.id)

    def test_kitchen_status_never_moves_backwards(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(order.id)
        service.mark_ready(order.id)
        service.mark_served(order.id)

        with pytest.raises(InvalidTransitionError):
            service.mark_ready(order.id)


class TestCancel:
    def test_cancel_unsent_order_frees_table(self, service, db_session, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)

        service.cancel_unsent_order(order.id)

        assert db_session.get(Order, order.id) is None
        table = TableService(db_session).get_table(seed_tables.t1.id)
        assert table.order_id is None
        assert table.status == "free"

    def test_cancel_publishes_table_release(self, service, notifier, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)

        service.cancel_unsent_order(order.id)

        released = notifier.events_on("orders_updated")[-1]
        assert released.event_type == EventType.TABLE_RELEASED
        assert released.entity_id == seed_tables.t1.id
        assert released.payload == {"order_id": order.id}

    def test_cancel_after_send_rejected(self, service, db_session, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(order.id)

        with pytest.raises(OrderAlreadySentError):
            service.cancel_unsent_order(order.id)

        assert _table_status(db_session, seed_tables.t1.id) == "in_kitchen"


class TestFinalize:
    def test_finalize_releases_table_and_writes_ledger(
        self, service, db_session, seed_tables, seed_catalog
    ):
        order = _seat_with_margherita(service, seed_tables, seed_catalog, quantity=2)
        service.send_to_kitchen(order.id)
        service.mark_ready(order.id)
        service.mark_served(order.id)

        order, inventory = service.finalize_order(order.id, payment_method="card")

        assert order.status == "finalized"
        assert order.payment_status == "paid"
        assert order.payment_method == "card"
        assert order.profit == pytest.approx(24.0 - 2 * 1.92)
        assert not inventory.failed
        assert db_session.query(SalesLedgerRow).filter_by(order_id=order.id).count() == 1

        table = TableService(db_session).get_table(seed_tables.t1.id)
        assert table.order_id is None
        assert table.covers is None
        assert table.status == "free"

    def test_default_payment_method_is_cash(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        order, _ = service.finalize_order(order.id)
        assert order.payment_method == "cash"

    def test_double_finalize_rejected(self, service, db_session, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.finalize_order(order.id)
        stock_after_first = seed_catalog.ingredients.flour.current_stock

        with pytest.raises(OrderAlreadyFinalizedError):
            service.finalize_order(order.id)

        db_session.refresh(seed_catalog.ingredients.flour)
        assert seed_catalog.ingredients.flour.current_stock == pytest.approx(stock_after_first)
        assert db_session.query(SalesLedgerRow).filter_by(order_id=order.id).count() == 1

    def test_finalize_without_lines_rejected(self, service, db_session, seed_tables):
        order = service.seat_table(seed_tables.t1.id, covers=2)

        with pytest.raises(EmptyOrderError):
            service.finalize_order(order.id)

        assert service.get_order(order.id).status == "in_progress"

    def test_finalized_order_is_immutable(self, service, seed_tables, seed_catalog):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.finalize_order(order.id)

        with pytest.raises(OrderAlreadyFinalizedError):
            service.add_order_lines(
                order.id, [OrderLineInput(product_id=seed_catalog.cola.id, quantity=1)]
            )


class TestTakeaway:
    def _checkout(self, service, seed_catalog, **overrides):
        request = CustomerOrderRequest(
            order_type=overrides.pop("order_type", "takeaway"),
            lines=[
                OrderLineInput(product_id=seed_catalog.margherita.id, quantity=2),
                OrderLineInput(product_id=seed_catalog.cola.id, quantity=2),
            ],
            client_name="Ada",
            client_phone="0600000000",
            **overrides,
        )
        return service.submit_customer_order(request)

    def test_checkout_waits_for_validation(self, service, seed_catalog):
        order = self._checkout(service, seed_catalog)

        assert order.status == "pending_validation"
        assert order.kitchen_status == "not_sent"
        assert order.subtotal == 30.0
        assert [o.id for o in service.get_takeaway_orders().pending] == [order.id]

    def test_promotions_set_discount(self, service, seed_catalog):
        order = self._checkout(
            service,
            seed_catalog,
            order_type="online",
            shipping_cost=3.0,
            applied_promotions=[
                {"kind": "fixed_amount", "promotion_id": 1, "name": "Welcome", "amount": 5.0},
                {
                    "kind": "buy_x_get_y",
                    "promotion_id": 2,
                    "name": "Cola 1+1",
                    "buy_quantity": 1,
                    "get_quantity": 1,
                    "eligible_quantity": 2,
                    "free_unit_price": 3.0,
                },
            ],
        )

        assert order.total_discount == 8.0
        assert order.total == 30.0 - 8.0 + 3.0
        assert order.applied_promotions[0]["kind"] == "fixed_amount"

    def test_send_before_validation_rejected(self, service, seed_catalog):
        order = self._checkout(service, seed_catalog)
        with pytest.raises(InvalidTransitionError):
            service.send_to_kitchen(order.id)

    def test_validate_ready_deliver(self, service, db_session, seed_catalog):
        order = self._checkout(service, seed_catalog)

        order = service.validate_takeaway_order(order.id)
        assert order.status == "in_progress"
        assert order.kitchen_status == "received"
        assert order.payment_method == "card"

        service.mark_ready(order.id)
        assert [o.id for o in service.get_takeaway_orders().ready] == [order.id]

        order, inventory = service.mark_delivered(order.id)
        assert order.status == "finalized"
        assert order.kitchen_status == "delivered"
        assert not inventory.failed
        assert db_session.query(SalesLedgerRow).filter_by(order_id=order.id).count() == 2

    def test_served_is_dine_in_only(self, service, seed_catalog):
        order = self._checkout(service, seed_catalog)
        service.validate_takeaway_order(order.id)
        service.mark_ready(order.id)

        with pytest.raises(InvalidTransitionError):
            service.mark_served(order.id)

    def test_notification_counts(self, service, seed_tables, seed_catalog):
        pending = self._checkout(service, seed_catalog)
        ready = self._checkout(service, seed_catalog)
        service.validate_takeaway_order(ready.id)
        service.mark_ready(ready.id)
        dine_in = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(dine_in.id)

        counts = service.get_notification_counts()

        assert counts.pending_takeaway == 1
        assert counts.ready_takeaway == 1
        assert counts.kitchen_orders == 1
        assert counts.ready_for_service == 0
        assert counts.low_stock_ingredients == 1
        assert [o.id for o in service.get_takeaway_orders().pending] == [pending.id]


class TestNotificationFailure:
    def test_failing_subscriber_does_not_fail_transition(
        self, service, notifier, seed_tables, seed_catalog
    ):
        def explode(event):
            raise RuntimeError("subscriber down")

        notifier.subscribe("orders_updated", explode)

        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        order = service.send_to_kitchen(order.id)

        assert order.kitchen_status == "received"


class TestFinalizeFailures:
    def test_ledger_failure_rolls_back_finalization(
        self, service, db_session, seed_tables, seed_catalog, monkeypatch
    ):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)
        service.send_to_kitchen(order.id)

        def fail(self, order):
            raise LedgerGenerationError(order.id, "disk full")

        monkeypatch.setattr(SalesLedgerService, "generate_for_order", fail)

        with pytest.raises(LedgerGenerationError):
            service.finalize_order(order.id)

        reloaded = service.get_order(order.id)
        assert reloaded.status == "in_progress"
        assert reloaded.payment_status == "unpaid"
        assert reloaded.finalized_at is None
        table = TableService(db_session).get_table(seed_tables.t1.id)
        assert table.order_id == order.id
        assert table.status == "in_kitchen"
        assert db_session.query(SalesLedgerRow).filter_by(order_id=order.id).count() == 0
        db_session.refresh(seed_catalog.ingredients.flour)
        assert seed_catalog.ingredients.flour.current_stock == pytest.approx(10.0)

    def test_inventory_failure_keeps_finalization(
        self, service, db_session, notifier, seed_tables, seed_catalog, monkeypatch
    ):
        order = _seat_with_margherita(service, seed_tables, seed_catalog)

        def fail(self, product_ids):
            raise OperationalError("SELECT product", {}, Exception("database is locked"))

        monkeypatch.setattr(InventoryConsumptionService, "_load_recipes", fail)

        order, inventory = service.finalize_order(order.id)

        assert inventory.failed is True
        assert inventory.updated == {}
        assert service.get_order(order.id).status == "finalized"
        assert db_session.query(SalesLedgerRow).filter_by(order_id=order.id).count() == 1
        assert _table_status(db_session, seed_tables.t1.id) == "free"
        db_session.refresh(seed_catalog.ingredients.flour)
        assert seed_catalog.ingredients.flour.current_stock == pytest.approx(10.0)

        finalized = [
            e for e in notifier.events_on("orders_updated")
            if e.event_type == EventType.ORDER_FINALIZED
        ]
        assert finalized[-1].payload == {"inventory_failed": True}


@pytest.fixture
def file_engine(tmp_path):
    """Two sessions need a shared store, so use a file instead of :memory:."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'orders.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sent_order_id(file_engine):
    """Margherita (200 g of flour) at T1, already sent to the kitchen."""
    with Session(file_engine, autoflush=False, expire_on_commit=False) as db:
        flour = Ingredient(name="Flour", unit="kg", current_stock=10.0, minimum_stock=1.0, unit_price=2.0)
        db.add(flour)
        db.flush()
        margherita = Product(
            name="Margherita",
            sale_price=12.0,
            recipe_lines=[RecipeLine(ingredient_id=flour.id, position=0, quantity=200.0)],
        )
        table = Table(name="T1", capacity=4)
        db.add_all([margherita, table])
        db.commit()

        service = OrderService(db, LocalChangeNotifier())
        order = service.seat_table(table.id, covers=2)
        service.add_order_lines(order.id, [OrderLineInput(product_id=margherita.id, quantity=1)])
        service.send_to_kitchen(order.id)
        return order.id


class TestConcurrentFinalize:
    def test_stale_writer_gets_conflict(self, file_engine, sent_order_id):
        with Session(file_engine, autoflush=False, expire_on_commit=False) as first, \
                Session(file_engine, autoflush=False, expire_on_commit=False) as second:
            stale = second.get(Order, sent_order_id)

            OrderService(first, LocalChangeNotifier()).finalize_order(sent_order_id)

            stale.covers = 3
            with pytest.raises(ConcurrentUpdateError):
                safe_commit(second, operation="edit covers", entity_id=sent_order_id)

    def test_second_finalizer_changes_nothing(self, file_engine, sent_order_id):
        with Session(file_engine, autoflush=False, expire_on_commit=False) as first, \
                Session(file_engine, autoflush=False, expire_on_commit=False) as second:
            second.get(Order, sent_order_id)

            OrderService(first, LocalChangeNotifier()).finalize_order(sent_order_id)
            with pytest.raises(OrderAlreadyFinalizedError):
                OrderService(second, LocalChangeNotifier()).finalize_order(sent_order_id)

        with Session(file_engine) as db:
            assert db.query(SalesLedgerRow).filter_by(order_id=sent_order_id).count() == 1
            flour = db.scalars(select(Ingredient)).one()
            assert flour.current_stock == pytest.approx(9.8)
            assert db.get(Order, sent_order_id).covers == 2
