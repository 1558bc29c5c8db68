"""HTTP surface: status codes and JSON shapes for the order, inventory and settings routes."""

import pytest
from sqlalchemy.exc import OperationalError

from backoffice.models import IdempotencyKey, InventoryItem, Order, OutboxTask, PosProduct
from backoffice.services import concurrency, outbox_service


@pytest.fixture
def pos_product(db_session, company, invoice_settings, make_item, make_pos_product):
    item = make_item(quantity=5)
    return make_pos_product(item, selling_price="118.00", gst_rate=18)


@pytest.fixture
def online_shop(db_session, company, invoice_settings, make_item, make_online_product, customer, address, add_to_cart):
    item = make_item(quantity=10)
    product = make_online_product(item)
    add_to_cart(customer, product, quantity=1)
    return {"item": item, "product": product, "customer": customer, "address": address}


def _pos_body(product, **overrides):
    body = {
        "created_by": "cashier-1",
        "items": [{"product_id": product.id, "quantity": 2}],
        "payment_method": "cash",
        "amount_received": 300,
    }
    body.update(overrides)
    return body


def test_health_degraded_without_invoice_settings(client, db_session):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"]["status"] == "healthy"
    assert data["checks"]["invoicing"]["status"] == "degraded"
    assert data["timestamp"].endswith("Z")


def test_health_healthy_with_invoice_settings(client, db_session, invoice_settings):
    data = client.get("/api/health").get_json()

    assert data["status"] == "healthy"
    assert data["checks"]["outbox"]["details"] == {"pending": 0, "dead": 0}


def test_health_degraded_by_dead_tasks(client, db_session, invoice_settings):
    db_session.add(OutboxTask(task_type="notify.operators", payload={"order_id": 1}, status="dead", attempts=5))
    db_session.commit()

    data = client.get("/api/health").get_json()

    assert data["status"] == "degraded"
    assert data["checks"]["outbox"]["details"]["dead"] == 1


def test_pos_order_created(client, db_session, pos_product):
    response = client.post("/api/pos/orders", json=_pos_body(pos_product))

    assert response.status_code == 201
    data = response.get_json()
    assert data["is_duplicate"] is False
    order = data["order"]
    assert order["order_number"] == "POS-000001"
    assert order["total"] == "236.00"
    assert order["change_given"] == "64.00"
    assert order["cgst_amount"] == "18.00"
    assert order["payment_status"] == "completed"
    assert len(order["lines"]) == 1
    assert db_session.get(InventoryItem, pos_product.item_id).quantity == 3
    assert db_session.get(PosProduct, pos_product.id).quantity == 3


def test_pos_order_duplicate_returns_200(client, db_session, pos_product):
    first = client.post("/api/pos/orders", json=_pos_body(pos_product))
    second = client.post("/api/pos/orders", json=_pos_body(pos_product))

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.get_json()["is_duplicate"] is True
    assert second.get_json()["order"]["order_number"] == first.get_json()["order"]["order_number"]


def test_pos_order_idempotency_key_header(app, client, db_session, pos_product, monkeypatch):
    monkeypatch.setitem(app.config, "DUPLICATE_ORDER_WINDOW_SECONDS", 0)
    headers = {"Idempotency-Key": "till-1-0001"}

    first = client.post("/api/pos/orders", json=_pos_body(pos_product), headers=headers)
    second = client.post("/api/pos/orders", json=_pos_body(pos_product), headers=headers)
    third = client.post("/api/pos/orders", json=_pos_body(pos_product, items=[{"product_id": pos_product.id, "quantity": 1}]))

    assert first.status_code == 201
    assert second.status_code == 200
    assert third.status_code == 201
    assert db_session.get(InventoryItem, pos_product.item_id).quantity == 2


def test_shared_idempotency_key_across_cashiers(app, client, db_session, pos_product, monkeypatch):
    monkeypatch.setitem(app.config, "DUPLICATE_ORDER_WINDOW_SECONDS", 0)
    headers = {"Idempotency-Key": "k1"}

    first = client.post("/api/pos/orders", json=_pos_body(pos_product, created_by="cashier-A"), headers=headers)
    second = client.post(
        "/api/pos/orders",
        json=_pos_body(
            pos_product,
            created_by="cashier-B",
            items=[{"product_id": pos_product.id, "quantity": 1}],
            payment_method="upi",
            amount_received=None,
        ),
        headers=headers,
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.get_json()["is_duplicate"] is False
    assert first.get_json()["order"]["order_number"] == "POS-000001"
    assert second.get_json()["order"]["order_number"] == "POS-000002"
    assert db_session.query(IdempotencyKey).filter_by(key="k1").count() == 2
    assert db_session.get(InventoryItem, pos_product.item_id).quantity == 2


@pytest.mark.parametrize("overrides, code", [
    ({"payment_method": "cheque"}, "invalid"),
    ({"created_by": None}, "invalid"),
    ({"items": []}, "empty_cart"),
    ({"amount_received": 100}, "invalid"),
    ({"items": [{"product_id": 0, "quantity": 1}]}, "not_found"),
])
def test_pos_order_rejected(client, db_session, pos_product, overrides, code):
    response = client.post("/api/pos/orders", json=_pos_body(pos_product, **overrides))

    assert response.status_code == 400
    assert response.get_json()["code"] == code
    assert db_session.get(InventoryItem, pos_product.item_id).quantity == 5


def test_pos_order_commit_failure_is_503(client, db_session, pos_product, monkeypatch):
    def locked(order, item_ids):
        raise OperationalError("INSERT INTO outbox_tasks", {}, Exception("database is locked"))

    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
    monkeypatch.setattr(outbox_service, "enqueue_order_side_effects", locked)

    response = client.post("/api/pos/orders", json=_pos_body(pos_product))

    assert response.status_code == 503
    assert response.get_json()["code"] == "commit_failed"
    assert db_session.query(Order).count() == 0
    assert db_session.get(InventoryItem, pos_product.item_id).quantity == 5


def test_pos_order_insufficient_stock(client, db_session, pos_product):
    response = client.post(
        "/api/pos/orders",
        json=_pos_body(pos_product, items=[{"product_id": pos_product.id, "quantity": 6}], amount_received=1000),
    )

    assert response.status_code == 400
    data = response.get_json()
    assert data["code"] == "insufficient_stock"
    assert data["details"]["available"] == 5


def test_online_cod_order_created(client, db_session, online_shop):
    response = client.post("/api/online/orders", json={
        "user_id": "user-1",
        "delivery_address_id": online_shop["address"].id,
        "payment_method": "cod",
    })

    assert response.status_code == 201
    order = response.get_json()["order"]
    assert order["order_number"] == "ONL-000001"
    assert order["payment_method"] == "cod"
    assert order["total"] == "640.00"
    assert order["payment_status"] == "pending"


def test_online_double_submit_returns_duplicate(client, db_session, online_shop):
    first = client.post("/api/online/orders", json={
        "user_id": "user-1", "delivery_address_id": online_shop["address"].id,
    })
    response = client.post("/api/online/orders", json={
        "user_id": "user-1", "delivery_address_id": online_shop["address"].id,
    })

    assert first.status_code == 201
    assert response.status_code == 200
    assert response.get_json()["is_duplicate"] is True
    assert response.get_json()["order"]["id"] == first.get_json()["order"]["id"]


def test_online_prepaid_checkout_then_confirm(client, db_session, online_shop):
    prepared = client.post("/api/online/orders", json={
        "user_id": "user-1",
        "delivery_address_id": online_shop["address"].id,
        "payment_method": "razorpay",
    })

    assert prepared.status_code == 200
    checkout = prepared.get_json()
    assert checkout["requires_payment"] is True
    assert checkout["amount"] == "640.00"
    assert checkout["currency"] == "INR"
    assert db_session.get(InventoryItem, online_shop["item"].id).quantity == 10

    confirmed = client.post("/api/online/orders/confirm", json={
        "order_number": checkout["order_number"],
        "payment_id": "pay_123",
        "user_id": "user-1",
    })

    assert confirmed.status_code == 201
    order = confirmed.get_json()["order"]
    assert order["order_number"] == checkout["order_number"]
    assert order["payment_status"] == "completed"
    assert db_session.get(InventoryItem, online_shop["item"].id).quantity == 9

    again = client.post("/api/online/orders/confirm", json={
        "order_number": checkout["order_number"], "payment_id": "pay_123", "user_id": "user-1",
    })
    assert again.status_code == 200
    assert again.get_json()["is_duplicate"] is True


def test_confirm_unknown_checkout(client, db_session):
    response = client.post("/api/online/orders/confirm", json={
        "order_number": "ONL-999999", "payment_id": "p", "user_id": "user-1",
    })

    assert response.status_code == 400
    assert response.get_json()["code"] == "not_found"


def test_confirm_requires_owner(client, db_session, online_shop):
    checkout = client.post("/api/online/orders", json={
        "user_id": "user-1",
        "delivery_address_id": online_shop["address"].id,
        "payment_method": "razorpay",
    }).get_json()

    anonymous = client.post("/api/online/orders/confirm", json={
        "order_number": checkout["order_number"], "payment_id": "pay_1",
    })
    stranger = client.post("/api/online/orders/confirm", json={
        "order_number": checkout["order_number"], "payment_id": "pay_1", "user_id": "user-2",
    })

    assert anonymous.status_code == 400
    assert anonymous.get_json()["code"] == "invalid"
    assert stranger.status_code == 400
    assert stranger.get_json()["code"] == "not_found"
    assert db_session.get(InventoryItem, online_shop["item"].id).quantity == 10


def test_get_order(client, db_session, pos_product):
    created = client.post("/api/pos/orders", json=_pos_body(pos_product)).get_json()["order"]

    response = client.get(f"/api/orders/{created['order_number']}")

    assert response.status_code == 200
    assert response.get_json()["order"]["id"] == created["id"]
    assert client.get("/api/orders/POS-999999").status_code == 404


def test_restock_order_once(client, db_session, pos_product):
    order = client.post("/api/pos/orders", json=_pos_body(pos_product)).get_json()["order"]

    first = client.post(f"/api/orders/{order['order_number']}/restock", json={"actor": "manager"})
    second = client.post(f"/api/orders/{order['order_number']}/restock", json={"actor": "manager"})

    assert first.status_code == 200
    result = first.get_json()["results"][0]
    assert result["applied_delta"] == 2
    assert result["new_quantity"] == 5
    assert second.status_code == 400
    assert second.get_json()["code"] == "stock_error"
    assert client.post("/api/orders/POS-999999/restock").status_code == 404


def test_invoice_settings_get_and_update(client, db_session):
    response = client.get("/api/finance/invoice-settings")

    assert response.status_code == 200
    data = response.get_json()
    assert data["settings"]["invoice_prefix"] == "INV"
    assert "financial_year" in data["current_period"]

    updated = client.put("/api/finance/invoice-settings", json={"invoice_prefix": "BILL"})
    assert updated.status_code == 200
    assert updated.get_json()["settings"]["invoice_prefix"] == "BILL"


def test_invoice_settings_rejects_bad_format(client, db_session, invoice_settings):
    response = client.put("/api/finance/invoice-settings", json={"invoice_format": "{PREFIX}"})

    assert response.status_code == 400
    data = response.get_json()
    assert data["code"] == "invalid_invoice_settings"
    assert "invoice_format" in data["details"]


def test_manual_adjustment_route(client, db_session, make_item):
    item = make_item(quantity=4)

    response = client.post(f"/api/inventory/items/{item.id}/adjustments", json={
        "adjustment_type": "decrease", "quantity": 1, "reason": "damage", "adjusted_by": "mgr",
    })

    assert response.status_code == 201
    assert response.get_json()["result"]["new_quantity"] == 3

    overdraw = client.post(f"/api/inventory/items/{item.id}/adjustments", json={
        "adjustment_type": "decrease", "quantity": 10, "reason": "damage",
    })
    assert overdraw.status_code == 400
    assert overdraw.get_json()["code"] == "stock_error"

    missing = client.post("/api/inventory/items/9999/adjustments", json={
        "adjustment_type": "increase", "quantity": 1, "reason": "found",
    })
    assert missing.status_code == 404


def test_receipt_and_adjustment_listing(client, db_session, make_item):
    item = make_item(quantity=0)

    receipt = client.post(f"/api/inventory/items/{item.id}/receipts", json={"quantity": 8, "reference": "PO-7"})
    assert receipt.status_code == 201
    assert receipt.get_json()["result"]["new_quantity"] == 8

    listing = client.get(f"/api/inventory/adjustments?item_id={item.id}").get_json()
    assert listing["total"] == 1
    assert listing["adjustments"][0]["method"] == "purchase_receipt"
    assert listing["adjustments"][0]["reference"] == "PO-7"

    assert client.get("/api/inventory/adjustments?from=not-a-date").status_code == 400


def test_movement_report_route(client, db_session, make_item):
    item = make_item(quantity=2)
    client.post(f"/api/inventory/items/{item.id}/receipts", json={"quantity": 3})

    report = client.get("/api/inventory/reports/movement").get_json()

    assert report["summary"]["movements"] == 1
    assert report["items"][0]["item_id"] == item.id
    assert report["start"].endswith("Z")
    assert client.get("/api/inventory/reports/movement?date=yesterday").status_code == 400
    assert client.get(
        "/api/inventory/reports/movement?from=2026-01-02T00:00:00Z&to=2026-01-01T00:00:00Z"
    ).status_code == 400


def test_resync_and_discrepancy_routes(client, db_session, make_item, make_pos_product):
    item = make_item(quantity=6)
    pos = make_pos_product(item)
    pos.quantity = 1
    db_session.commit()

    before = client.get("/api/inventory/reports/discrepancies").get_json()
    assert before["count"] == 1

    response = client.post(f"/api/inventory/items/{item.id}/resync")
    assert response.status_code == 200
    assert response.get_json()["mirrors"][0]["quantity"] == 6

    after = client.get("/api/inventory/reports/discrepancies").get_json()
    assert after["count"] == 0
    assert client.post("/api/inventory/items/9999/resync").status_code == 404
