from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from table_ordering.db import MenuItemModel, OrderStatus
from table_ordering.services.events import EventType, OrderEvent


@pytest.fixture
def menu(make_menu_item):
    return {
        "adobo": make_menu_item(name="Chicken Adobo", price="120.00", quantity=3, sales=10, image="adobo.jpg"),
        "rice": make_menu_item(name="Garlic Rice", price="35.00", quantity=10, category="Rice"),
        "lumpia": make_menu_item(name="Lumpia", price="80.00", quantity=5, sales=40, category="Appetizer",
                                 image="https://cdn.example.com/lumpia.png"),
    }


def fail_commits(monkeypatch):
    def commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", commit)


def place(client, table_id, lines):
    r = client.post("/orders", json={
        "table_id": table_id,
        "items": [{"menu_item_id": item_id, "quantity": quantity} for item_id, quantity in lines],
    })
    assert r.status_code == 201, r.text
    return r.json()


class TestMenuApi:
    def test_list_menu_resolves_images(self, client, menu):
        r = client.get("/menu")

        assert r.status_code == 200
        items = {i["name"]: i for i in r.json()}
        assert [i["name"] for i in r.json()] == ["Chicken Adobo", "Garlic Rice", "Lumpia"]
        assert items["Chicken Adobo"]["image"] == "http://storage.test/inventory/adobo.jpg"
        assert items["Garlic Rice"]["image"] == "http://storage.test/inventory/default.jpg"
        assert items["Lumpia"]["image"] == "https://cdn.example.com/lumpia.png"
        assert items["Chicken Adobo"]["price"] == 120.0

    def test_categories_start_with_all(self, client, menu):
        assert client.get("/menu/categories").json() == ["All", "Main Course", "Rice", "Appetizer"]

    def test_best_sellers_and_search(self, client, menu):
        best = client.get("/menu/best-sellers", params={"count": 2}).json()
        found = client.get("/menu/search", params={"q": "RICE"}).json()

        assert [i["name"] for i in best] == ["Lumpia", "Chicken Adobo"]
        assert [i["name"] for i in found] == ["Garlic Rice"]
        assert client.get("/menu/search", params={"q": "  "}).json() == []

    def test_admin_crud(self, client):
        created = client.post("/menu", json={"name": "Halo-Halo", "price": 90.5, "quantity": 4, "category": "Dessert"})
        assert created.status_code == 201
        item_id = created.json()["id"]

        updated = client.put(f"/menu/{item_id}", json={"quantity": 10})
        assert updated.json()["quantity"] == 10
        assert updated.json()["price"] == 90.5

        assert client.delete(f"/menu/{item_id}").json() == {"ok": True}
        assert client.get(f"/menu/{item_id}").status_code == 404

    def test_cannot_delete_ordered_item(self, client, menu):
        place(client, 1, [(menu["rice"].id, 1)])

        r = client.delete(f"/menu/{menu['rice'].id}")

        assert r.status_code == 409
        assert r.json()["error"] == "MenuItemInUse"


class TestCartApi:
    def test_add_and_view_cart(self, client, menu):
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["rice"].id})
        r = client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})

        cart = r.json()
        assert cart["table_id"] == 5
        assert [(line["item"]["name"], line["quantity"]) for line in cart["lines"]] == [
            ("Chicken Adobo", 2),
            ("Garlic Rice", 1),
        ]
        assert cart["total"] == 275.0
        assert cart["item_count"] == 3
        assert client.get("/tables/6/cart").json()["item_count"] == 0

    def test_stock_ceiling(self, client, menu):
        for _ in range(3):
            client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})

        r = client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})

        assert r.status_code == 409
        assert r.json()["error"] == "StockExceeded"
        assert "Available: 3" in r.json()["detail"]

    def test_unknown_item(self, client, menu):
        r = client.post("/tables/5/cart/items", json={"menu_item_id": 999})
        assert r.status_code == 404

    def test_remove_and_clear(self, client, menu):
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})

        assert client.delete(f"/tables/5/cart/items/{menu['adobo'].id}").json()["item_count"] == 1
        assert client.delete("/tables/5/cart").json()["item_count"] == 0

    def test_checkout_clears_cart(self, client, menu):
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["rice"].id})

        r = client.post("/tables/5/checkout")

        assert r.status_code == 200
        order = r.json()
        assert order["status"] == "pending"
        assert order["total_amount"] == 155.0
        assert order["item_count"] == 2
        assert client.get("/tables/5/cart").json()["lines"] == []

    def test_checkout_keeps_units_added_meanwhile(self, client, bus, carts, menu):
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["rice"].id})
        cart = carts.cart_for(5)
        rice = cart.snapshot()[1]
        # Another device adds rice while the order is being saved
        bus.subscribe(lambda event: cart.add(rice))

        r = client.post("/tables/5/checkout")

        assert r.json()["item_count"] == 2
        lines = client.get("/tables/5/cart").json()["lines"]
        assert [(line["item"]["name"], line["quantity"]) for line in lines] == [("Garlic Rice", 1)]

    @pytest.mark.parametrize("table_id", [0, -3])
    def test_table_id_must_be_positive(self, client, menu, table_id):
        assert client.get(f"/tables/{table_id}/cart").status_code == 422
        assert client.post(f"/tables/{table_id}/checkout").status_code == 422
        r = client.post(f"/tables/{table_id}/cart/items", json={"menu_item_id": menu["rice"].id})
        assert r.status_code == 422

    def test_checkout_empty_cart(self, client, menu):
        r = client.post("/tables/5/checkout")
        assert r.status_code == 400
        assert r.json()["error"] == "EmptyCart"

    def test_failed_checkout_keeps_cart(self, client, session, menu):
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})
        client.post("/tables/5/cart/items", json={"menu_item_id": menu["adobo"].id})

        adobo = session.get(MenuItemModel, menu["adobo"].id)
        adobo.quantity = 1
        session.add(adobo)
        session.commit()

        r = client.post("/tables/5/checkout")

        assert r.status_code == 409
        assert client.get("/tables/5/cart").json()["item_count"] == 2


class TestOrderFlow:
    def test_full_lifecycle(self, client, session, menu):
        order = place(client, 5, [(menu["adobo"].id, 3)])
        order_id = order["id"]
        assert order["total_amount"] == 360.0

        assert client.get("/cashier/orders/pending").json()[0]["id"] == order_id
        assert client.post(f"/cashier/orders/{order_id}/approve").json()["status"] == "confirmed"
        assert client.post(f"/kitchen/orders/{order_id}/prepare").json()["status"] == "preparing"

        board = client.get("/kitchen/orders").json()
        assert [o["id"] for o in board["preparing"]] == [order_id]
        assert board["ready"] == []

        assert client.post(f"/kitchen/orders/{order_id}/ready").json()["status"] == "ready"
        served = client.post(f"/kitchen/orders/{order_id}/serve")
        assert served.json()["status"] == "completed"

        session.expire_all()
        adobo = session.get(MenuItemModel, menu["adobo"].id)
        assert (adobo.quantity, adobo.sales) == (0, 13)

        again = client.post(f"/kitchen/orders/{order_id}/serve")
        assert again.status_code == 409
        assert again.json()["error"] == "InvalidTransition"

    def test_latest_order_for_waiting_room(self, client, menu):
        assert client.get("/tables/5/orders/latest").json() == {"order": None, "poll_interval_seconds": 10.0}

        order = place(client, 5, [(menu["rice"].id, 2)])
        latest = client.get("/tables/5/orders/latest").json()

        assert latest["order"]["id"] == order["id"]
        assert latest["poll_interval_seconds"] == 10.0
        assert [o["id"] for o in client.get("/tables/5/orders").json()] == [order["id"]]

    def test_reject_with_reason(self, client, menu):
        order = place(client, 2, [(menu["rice"].id, 1)])

        r = client.post(f"/cashier/orders/{order['id']}/reject", json={"reason": "Out of rice"})

        assert r.json()["status"] == "cancelled"
        assert r.json()["cancellation_reason"] == "Out of rice"

    def test_batch_approve_and_ready(self, client, menu):
        a = place(client, 1, [(menu["rice"].id, 1)])
        b = place(client, 2, [(menu["rice"].id, 1)])

        approved = client.post("/cashier/orders/approve", json={"order_ids": [a["id"], b["id"]]})
        assert {o["status"] for o in approved.json()} == {"confirmed"}

        for order_id in (a["id"], b["id"]):
            client.post(f"/kitchen/orders/{order_id}/prepare")
        ready = client.post("/kitchen/orders/ready", json={"order_ids": [a["id"], b["id"]]})
        assert {o["status"] for o in ready.json()} == {"ready"}

    def test_batch_approve_with_repeated_id(self, client, menu):
        a = place(client, 1, [(menu["rice"].id, 1)])
        b = place(client, 2, [(menu["rice"].id, 1)])

        r = client.post("/cashier/orders/approve", json={"order_ids": [a["id"], b["id"], a["id"]]})

        assert r.status_code == 200
        assert [(o["id"], o["status"]) for o in r.json()] == [(a["id"], "confirmed"), (b["id"], "confirmed")]

    def test_generic_status_update(self, client, menu):
        order = place(client, 3, [(menu["rice"].id, 1)])

        skipped = client.patch(f"/orders/{order['id']}/status", json={"status": "ready"})
        assert skipped.status_code == 409

        confirmed = client.patch(f"/orders/{order['id']}/status", json={"status": "confirmed"})
        assert confirmed.json()["status"] == "confirmed"

    def test_unknown_order(self, client):
        r = client.get("/orders/4242")
        assert r.status_code == 404
        assert r.json()["error"] == "OrderNotFound"

    def test_feedback(self, client, menu):
        order = place(client, 5, [(menu["rice"].id, 1)])
        order_id = order["id"]

        early = client.post(f"/orders/{order_id}/feedback", json={"foodRating": 5, "serviceRating": 5})
        assert early.status_code == 409

        for step in ("confirmed", "preparing", "ready", "completed"):
            client.patch(f"/orders/{order_id}/status", json={"status": step})

        r = client.post(f"/orders/{order_id}/feedback",
                        json={"foodRating": 5, "serviceRating": 4, "comments": "Masarap"})
        assert r.status_code == 200
        assert r.json()["status"] == "completed"
        assert r.json()["feedback"]["comments"] == "Masarap"

        twice = client.post(f"/orders/{order_id}/feedback", json={"food_rating": 1, "service_rating": 1})
        assert twice.status_code == 409
        assert twice.json()["error"] == "FeedbackAlreadySubmitted"

        invalid = client.post(f"/orders/{order_id}/feedback", json={"food_rating": 0, "service_rating": 1})
        assert invalid.status_code == 422

    def test_history_and_export(self, client, menu):
        a = place(client, 1, [(menu["rice"].id, 1)])
        place(client, 2, [(menu["rice"].id, 1)])
        client.post(f"/cashier/orders/{a['id']}/approve")

        history = client.get("/cashier/orders/history").json()
        assert [o["id"] for o in history] == [a["id"]]

        filtered = client.get("/cashier/orders/history", params={"status": "cancelled"}).json()
        assert filtered == []

        export = client.get("/cashier/orders/history/export")
        assert export.status_code == 200
        assert export.headers["content-type"].startswith("text/csv")
        assert "Garlic Rice x1" in export.text


class TestPersistenceFailureApi:
    def assert_unavailable(self, r):
        assert r.status_code == 503
        assert r.json()["error"] == "PersistenceFailure"
        assert "database is locked" in r.json()["detail"]

    def test_checkout(self, client, menu, monkeypatch):
        fail_commits(monkeypatch)
        r = client.post("/orders", json={"table_id": 5, "items": [{"menu_item_id": menu["rice"].id, "quantity": 1}]})
        monkeypatch.undo()

        self.assert_unavailable(r)
        assert client.get("/tables/5/orders").json() == []

    def test_completion(self, client, menu, monkeypatch):
        order = place(client, 5, [(menu["adobo"].id, 3)])
        for step in ("confirmed", "preparing", "ready"):
            client.patch(f"/orders/{order['id']}/status", json={"status": step})

        fail_commits(monkeypatch)
        r = client.post(f"/kitchen/orders/{order['id']}/serve")
        monkeypatch.undo()

        self.assert_unavailable(r)
        assert client.get(f"/orders/{order['id']}").json()["status"] == "ready"
        adobo = client.get(f"/menu/{menu['adobo'].id}").json()
        assert (adobo["quantity"], adobo["sales"]) == (3, 10)

    def test_feedback(self, client, menu, monkeypatch):
        order = place(client, 5, [(menu["rice"].id, 1)])
        for step in ("confirmed", "preparing", "ready", "completed"):
            client.patch(f"/orders/{order['id']}/status", json={"status": step})

        fail_commits(monkeypatch)
        r = client.post(f"/orders/{order['id']}/feedback", json={"food_rating": 5, "service_rating": 5})
        monkeypatch.undo()

        self.assert_unavailable(r)
        assert client.get(f"/orders/{order['id']}").json()["feedback"] is None

    def test_menu_admin_writes(self, client, menu, monkeypatch):
        fail_commits(monkeypatch)
        created = client.post("/menu", json={"name": "Halo-Halo", "price": 90.5, "quantity": 4})
        updated = client.put(f"/menu/{menu['rice'].id}", json={"quantity": 99})
        deleted = client.delete(f"/menu/{menu['lumpia'].id}")
        monkeypatch.undo()

        for r in (created, updated, deleted):
            self.assert_unavailable(r)
        names = [i["name"] for i in client.get("/menu").json()]
        assert names == ["Chicken Adobo", "Garlic Rice", "Lumpia"]
        assert client.get(f"/menu/{menu['rice'].id}").json()["quantity"] == 10


class TestReportsApi:
    def test_sales_report_today(self, client, menu):
        order = place(client, 5, [(menu["adobo"].id, 1)])
        for step in ("confirmed", "preparing", "ready"):
            client.patch(f"/orders/{order['id']}/status", json={"status": step})

        report = client.get("/reports/sales", params={"period": "today"}).json()

        assert report["period"] == "today"
        assert report["summary"]["total_revenue"] == 120.0
        assert report["summary"]["total_orders"] == 1
        assert report["top_selling_items"][0]["image"] == "http://storage.test/inventory/adobo.jpg"

    def test_custom_range_and_export(self, client, menu):
        today = date.today().isoformat()

        report = client.get("/reports/sales", params={"date_from": today, "date_to": today}).json()
        export = client.get("/reports/sales/export", params={"date_from": today, "date_to": today})

        assert report["period"] == "custom"
        assert report["end"].endswith("23:59:59.999999")
        assert export.headers["content-type"].startswith("text/csv")
        assert export.text.startswith("Metric,Value")

    def test_half_open_range_rejected(self, client):
        r = client.get("/reports/sales", params={"date_from": "2025-06-01"})
        assert r.status_code == 422

    def test_compare(self, client, menu):
        today = date.today().isoformat()
        r = client.get("/reports/compare", params={
            "period1_from": today, "period1_to": today,
            "period2_from": "2020-01-01", "period2_to": "2020-01-31",
        })

        assert r.status_code == 200
        assert r.json()["orders_diff"] == 0


class TestOrderEventsSocket:
    def test_streams_matching_events(self, client, bus):
        with client.websocket_connect("/ws/orders?status=pending&table_id=5") as ws:
            bus.publish(OrderEvent(EventType.INSERT, 1, 6, OrderStatus.PENDING))
            bus.publish(OrderEvent(EventType.INSERT, 2, 5, OrderStatus.PENDING))

            message = ws.receive_json()

        assert message["order_id"] == 2
        assert message["status"] == "pending"

    def test_checkout_is_announced(self, client, bus, menu):
        with client.websocket_connect("/ws/orders?status=pending") as ws:
            order = place(client, 4, [(menu["rice"].id, 1)])
            message = ws.receive_json()

        assert message["type"] == "INSERT"
        assert message["order_id"] == order["id"]
        assert message["table_id"] == 4
