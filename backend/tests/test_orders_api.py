"""
API tests for tables, orders, kitchen, ingredients and reports.
"""

import pytest


def _seat(client, table_id, covers=2):
    return client.post(f"/api/tables/{table_id}/seat", json={"covers": covers})


class TestTablesAPI:
    def test_create_and_list(self, client):
        response = client.post("/api/tables", json={"name": "Terrace-1", "capacity": 6})
        assert response.status_code == 201
        assert response.json()["status"] == "free"

        tables = client.get("/api/tables").json()
        assert [t["name"] for t in tables] == ["Terrace-1"]

    def test_seat_with_invalid_covers_is_400(self, client, seed_tables):
        response = _seat(client, seed_tables.t1.id, covers=0)
        assert response.status_code == 400

        response = client.post(f"/api/tables/{seed_tables.t1.id}/seat", json={})
        assert response.status_code == 400

    def test_seat_unknown_table_is_404(self, client):
        assert _seat(client, 999).status_code == 404

    def test_delete_occupied_table_is_409(self, client, seed_tables):
        _seat(client, seed_tables.t1.id)
        response = client.delete(f"/api/tables/{seed_tables.t1.id}")
        assert response.status_code == 409

    def test_delete_free_table(self, client, seed_tables):
        assert client.delete(f"/api/tables/{seed_tables.t2.id}").status_code == 204
        assert client.get(f"/api/tables/{seed_tables.t2.id}").status_code == 404


class TestDineInFlowAPI:
    def test_full_flow(self, client, seed_tables, seed_catalog, notifier):
        order = _seat(client, seed_tables.t1.id, covers=3).json()
        assert order["kitchen_status"] == "not_sent"
        order_id = order["id"]

        response = client.post(
            f"/api/orders/{order_id}/lines",
            json={"lines": [
                {"product_id": seed_catalog.margherita.id, "quantity": 2},
                {
                    "product_id": seed_catalog.bruschetta.id,
                    "quantity": 1,
                    "excluded_ingredient_ids": [seed_catalog.ingredients.basil.id],
                    "comment": "no basil",
                },
            ]},
        )
        assert response.status_code == 200
        assert response.json()["subtotal"] == pytest.approx(29.0)

        response = client.post(f"/api/orders/{order_id}/send-to-kitchen")
        assert response.status_code == 200
        assert response.json()["kitchen_status"] == "received"

        table = client.get(f"/api/tables/{seed_tables.t1.id}").json()
        assert table["status"] == "in_kitchen"
        assert table["covers"] == 3

        tickets = client.get("/api/kitchen/tickets").json()
        assert len(tickets) == 1
        assert len(tickets[0]["lines"]) == 2

        assert client.post(f"/api/orders/{order_id}/ready").status_code == 200
        assert client.post(f"/api/orders/{order_id}/served").status_code == 200

        response = client.post(f"/api/orders/{order_id}/finalize", json={"payment_method": "card"})
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "finalized"
        assert body["order"]["payment_method"] == "card"
        assert body["inventory"]["failed"] is False
        assert str(seed_catalog.ingredients.basil.id) not in body["inventory"]["consumption"]

        table = client.get(f"/api/tables/{seed_tables.t1.id}").json()
        assert table["status"] == "free"
        assert table["order_id"] is None

        finalized = client.get("/api/orders/finalized").json()
        assert [o["id"] for o in finalized] == [order_id]

        event_types = [e.event_type.value for e in notifier.events_on("orders_updated")]
        assert event_types[0] == "TABLE_SEATED"
        assert event_types[-2:] == ["ORDER_FINALIZED", "TABLE_RELEASED"]

    def test_double_finalize_is_409(self, client, seed_tables, seed_catalog):
        order_id = _seat(client, seed_tables.t1.id).json()["id"]
        client.post(
            f"/api/orders/{order_id}/lines",
            json={"lines": [{"product_id": seed_catalog.cola.id, "quantity": 1}]},
        )
        assert client.post(f"/api/orders/{order_id}/finalize").status_code == 200
        assert client.post(f"/api/orders/{order_id}/finalize").status_code == 409

    def test_finalize_empty_order_is_400(self, client, seed_tables):
        order_id = _seat(client, seed_tables.t1.id).json()["id"]
        assert client.post(f"/api/orders/{order_id}/finalize").status_code == 400

    def test_cancel_unsent(self, client, seed_tables, seed_catalog):
        order_id = _seat(client, seed_tables.t1.id).json()["id"]

        assert client.delete(f"/api/orders/{order_id}").status_code == 204
        assert client.get(f"/api/orders/{order_id}").status_code == 404
        assert client.get(f"/api/tables/{seed_tables.t1.id}").json()["status"] == "free"

    def test_cancel_sent_is_409(self, client, seed_tables, seed_catalog):
        order_id = _seat(client, seed_tables.t1.id).json()["id"]
        client.post(
            f"/api/orders/{order_id}/lines",
            json={"lines": [{"product_id": seed_catalog.cola.id, "quantity": 1}]},
        )
        client.post(f"/api/orders/{order_id}/send-to-kitchen")

        assert client.delete(f"/api/orders/{order_id}").status_code == 409

    def test_unknown_order_is_404(self, client):
        assert client.get("/api/orders/4242").status_code == 404
        assert client.post("/api/orders/4242/ready").status_code == 404


class TestTakeawayAPI:
    def test_checkout_validate_deliver(self, client, seed_catalog):
        response = client.post(
            "/api/orders/checkout",
            json={
                "order_type": "online",
                "client_name": "Grace",
                "client_address": "1 Main St",
                "shipping_cost": 2.5,
                "lines": [{"product_id": seed_catalog.margherita.id, "quantity": 1}],
                "applied_promotions": [
                    {
                        "kind": "percentage",
                        "promotion_id": "SPRING",
                        "name": "Spring 10%",
                        "percent": 10,
                        "base_amount": 12.0,
                    }
                ],
            },
        )
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "pending_validation"
        assert order["total_discount"] == pytest.approx(1.2)
        assert order["total"] == pytest.approx(12.0 - 1.2 + 2.5)
        assert order["applied_promotions"] == [
            {
                "kind": "percentage",
                "promotion_id": "SPRING",
                "name": "Spring 10%",
                "percent": 10.0,
                "base_amount": 12.0,
                "max_discount_amount": None,
            }
        ]

        counts = client.get("/api/orders/notifications").json()
        assert counts["pending_takeaway"] == 1

        order_id = order["id"]
        assert client.post(f"/api/orders/{order_id}/validate").json()["kitchen_status"] == "received"
        client.post(f"/api/orders/{order_id}/ready")
        assert [o["id"] for o in client.get("/api/orders/takeaway").json()["ready"]] == [order_id]

        response = client.post(f"/api/orders/{order_id}/delivered")
        assert response.status_code == 200
        assert response.json()["order"]["kitchen_status"] == "delivered"

        history = client.get("/api/reports/sales-history").json()
        assert len(history) == 1
        assert history[0]["total_revenue"] == pytest.approx(10.8)

    def test_checkout_without_lines_is_400(self, client):
        response = client.post("/api/orders/checkout", json={"lines": []})
        assert response.status_code == 400


class TestIngredientsAPI:
    def test_low_stock_and_resupply(self, client, seed_ingredients):
        low = client.get("/api/ingredients/low-stock").json()
        assert [i["name"] for i in low] == ["Basil"]

        basil_id = seed_ingredients.basil.id
        response = client.post(
            f"/api/ingredients/{basil_id}/resupply", json={"quantity": 100, "unit_price": 0.05}
        )
        assert response.status_code == 201
        assert response.json()["ingredient"]["current_stock"] == pytest.approx(120.0)
        assert client.get("/api/ingredients/low-stock").json() == []

    def test_resupply_invalid_quantity_is_400(self, client, seed_ingredients):
        response = client.post(
            f"/api/ingredients/{seed_ingredients.flour.id}/resupply",
            json={"quantity": 0, "unit_price": 1.0},
        )
        assert response.status_code == 400


class TestReportsAPI:
    def test_dashboard_defaults_to_week(self, client):
        response = client.get("/api/reports/dashboard")
        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "week"
        assert len(body["revenue_series"]) == 7

    def test_dashboard_rejects_unknown_period(self, client):
        assert client.get("/api/reports/dashboard?period=year").status_code == 422

    def test_daily_report(self, client):
        response = client.get("/api/reports/daily")
        assert response.status_code == 200
        assert response.json()["orders"] == 0

    def test_regenerate_open_order_is_409(self, client, seed_tables):
        order_id = _seat(client, seed_tables.t1.id).json()["id"]
        assert client.post(f"/api/reports/ledger/{order_id}/regenerate").status_code == 409
