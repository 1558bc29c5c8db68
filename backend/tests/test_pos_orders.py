from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from backoffice.errors import OrderCommitError, OrderValidationError
from backoffice.models import (
    Customer,
    DocumentSequence,
    IdempotencyKey,
    InventoryItem,
    InvoiceSettings,
    LedgerEntry,
    Order,
    OutboxTask,
    PosProduct,
    StockAdjustment,
)
from backoffice.services import concurrency, order_service, outbox_service


@pytest.fixture
def till(db_session, company, invoice_settings, make_item, make_pos_product):
    """Two POS products: 118.00 @18% (stock 5) and 105.00 @5% (stock 20)."""
    shirt = make_item(quantity=5, gst_rate=18, name="Shirt")
    rice = make_item(quantity=20, gst_rate=5, name="Rice")
    return {
        "shirt_item": shirt,
        "shirt": make_pos_product(shirt, selling_price="118.00", gst_rate=18),
        "rice_item": rice,
        "rice": make_pos_product(rice, selling_price="105.00", gst_rate=5),
    }


def test_cash_order_with_change(db_session, till):
    result = order_service.place_pos_order(
        cashier_id="cashier-1",
        items=[{"product_id": till["shirt"].id, "quantity": 3}],
        payment_method="cash",
        amount_received="400",
    )

    order = result.order
    assert order.order_number == "POS-000001"
    assert order.invoice_number.endswith("-0001")
    assert order.channel == "pos"
    assert order.payment_status == "completed"
    assert order.order_status == "completed"
    assert order.completed_at is not None
    assert order.gst_type == "cgst_sgst"
    assert order.subtotal == Decimal("300.00")
    assert order.total_tax == Decimal("54.00")
    assert order.cgst_amount == order.sgst_amount == Decimal("27.00")
    assert order.total == Decimal("354.00")
    assert order.amount_received == Decimal("400.00")
    assert order.change_given == Decimal("46.00")

    line = order.lines[0]
    assert line.base_unit_price == Decimal("100.0000")
    assert line.line_base == Decimal("300.0000")
    assert line.tax_amount == Decimal("54.0000")
    assert line.cgst_rate == Decimal("9.00")

    assert db_session.get(InventoryItem, till["shirt_item"].id).quantity == 2
    assert db_session.get(PosProduct, till["shirt"].id).quantity == 2

    entry = db_session.query(LedgerEntry).filter_by(order_id=order.id).one()
    assert entry.reference_type == "pos_order"
    assert entry.net_amount == Decimal("300.00")


def test_mixed_rates_and_line_discount(db_session, till):
    order = order_service.place_pos_order(
        cashier_id="cashier-1",
        items=[
            {"product_id": till["shirt"].id, "quantity": 1, "discount_percent": 10},
            {"product_id": till["rice"].id, "quantity": 2},
        ],
        payment_method="upi",
    ).order

    # Shirt: 118 - 10% = 106.20 -> base 90.00, tax 16.20. Rice: 210 -> base 200, tax 10
    assert order.subtotal == Decimal("290.00")
    assert order.total_tax == Decimal("26.20")
    assert order.total == Decimal("316.20")
    assert order.amount_received is None
    assert len(order.lines) == 2
    assert order.lines[0].discount_percent == Decimal("10.00")


def test_order_level_discount(db_session, till):
    order = order_service.place_pos_order(
        cashier_id="cashier-1",
        items=[{"product_id": till["shirt"].id, "quantity": 1}],
        payment_method="card",
        discount="18",
    ).order

    assert order.discount == Decimal("18.00")
    assert order.total == Decimal("100.00")


def test_same_item_on_two_lines_is_checked_together(db_session, till):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(
            cashier_id="cashier-1",
            items=[
                {"product_id": till["shirt"].id, "quantity": 3},
                {"product_id": till["shirt"].id, "quantity": 3},
            ],
            payment_method="card",
        )

    assert exc_info.value.code == "insufficient_stock"
    assert exc_info.value.details["requested"] == 6
    assert db_session.query(Order).count() == 0
    assert db_session.query(StockAdjustment).count() == 0
    assert db_session.get(InventoryItem, till["shirt_item"].id).quantity == 5


def test_cash_below_total_is_rejected(db_session, till):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(
            cashier_id="cashier-1",
            items=[{"product_id": till["shirt"].id, "quantity": 1}],
            payment_method="cash",
            amount_received="100",
        )

    assert exc_info.value.code == "invalid"
    assert db_session.query(Order).count() == 0


@pytest.mark.parametrize("overrides", [
    {"payment_method": "cheque"},
    {"cashier_id": ""},
    {"quantity": 0},
    {"quantity": 1.5},
    {"discount": "-5"},
])
def test_invalid_requests(db_session, till, overrides):
    params = {"cashier_id": "cashier-1", "payment_method": "cash", "discount": 0}
    params.update(overrides)
    quantity = params.pop("quantity", 1)

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(
            items=[{"product_id": till["shirt"].id, "quantity": quantity}], **params,
        )

    assert exc_info.value.code == "invalid"


def test_non_object_line_is_invalid(db_session, till):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(cashier_id="cashier-1", items=["shirt"], payment_method="cash")

    assert exc_info.value.code == "invalid"


def test_discount_percent_over_100(db_session, till):
    with pytest.raises(OrderValidationError):
        order_service.place_pos_order(
            cashier_id="cashier-1",
            items=[{"product_id": till["shirt"].id, "quantity": 1, "discount_percent": 150}],
            payment_method="card",
        )


def test_empty_basket(db_session, till):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(cashier_id="cashier-1", items=[], payment_method="card")

    assert exc_info.value.code == "empty_cart"


def test_unknown_product(db_session, till):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_pos_order(
            cashier_id="cashier-1", items=[{"product_id": 9999, "quantity": 1}], payment_method="card",
        )

    assert exc_info.value.code == "not_found"


def test_identical_basket_within_window_is_duplicate(db_session, till):
    items = [{"product_id": till["rice"].id, "quantity": 2}]
    first = order_service.place_pos_order(cashier_id="cashier-1", items=items, payment_method="card")
    second = order_service.place_pos_order(cashier_id="cashier-1", items=items, payment_method="card")

    assert second.is_duplicate is True
    assert second.order.id == first.order.id
    assert db_session.query(Order).count() == 1
    assert db_session.get(InventoryItem, till["rice_item"].id).quantity == 18


def test_different_basket_or_cashier_is_not_duplicate(db_session, till):
    order_service.place_pos_order(
        cashier_id="cashier-1", items=[{"product_id": till["rice"].id, "quantity": 2}], payment_method="card",
    )
    other_basket = order_service.place_pos_order(
        cashier_id="cashier-1", items=[{"product_id": till["rice"].id, "quantity": 1}], payment_method="card",
    )
    other_cashier = order_service.place_pos_order(
        cashier_id="cashier-2", items=[{"product_id": till["rice"].id, "quantity": 2}], payment_method="card",
    )

    assert other_basket.is_duplicate is False
    assert other_cashier.is_duplicate is False
    assert other_cashier.order.order_number == "POS-000003"
    assert db_session.get(InventoryItem, till["rice_item"].id).quantity == 15


def test_known_customer_gets_analytics(db_session, till):
    customer = Customer(user_id="walk-in-42", name="Ravi", phone="9000000042")
    db_session.add(customer)
    db_session.commit()

    order = order_service.place_pos_order(
        cashier_id="cashier-1",
        items=[{"product_id": till["rice"].id, "quantity": 1}],
        payment_method="card",
        customer={"id": customer.id},
    ).order

    assert order.customer_name == "Ravi"
    assert order.customer_phone == "9000000042"
    customer = db_session.get(Customer, customer.id)
    assert customer.total_orders == 1
    assert customer.total_spent == Decimal("105.00")


def test_product_without_rate_falls_back_to_item_rate(db_session, till, make_item, make_pos_product):
    item = make_item(quantity=4, gst_rate=12, name="Lamp")
    lamp = make_pos_product(item, selling_price="112.00", gst_rate=None)

    order = order_service.place_pos_order(
        cashier_id="cashier-1", items=[{"product_id": lamp.id, "quantity": 1}], payment_method="card",
    ).order

    assert order.total_tax == Decimal("12.00")
    assert order.lines[0].gst_rate == Decimal("12.00")


def test_commit_failure_rolls_back_everything(db_session, till, monkeypatch):
    calls = []

    def locked(order, item_ids):
        calls.append(order.order_number)
        raise OperationalError("INSERT INTO outbox_tasks", {}, Exception("database is locked"))

    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
    monkeypatch.setattr(outbox_service, "enqueue_order_side_effects", locked)

    with pytest.raises(OrderCommitError) as exc_info:
        order_service.place_pos_order(
            cashier_id="cashier-1",
            items=[{"product_id": till["shirt"].id, "quantity": 2}],
            payment_method="card",
            idempotency_key="till-1-0042",
        )

    assert exc_info.value.code == "commit_failed"
    assert exc_info.value.http_status == 503
    assert len(calls) == 3
    assert db_session.query(Order).count() == 0
    assert db_session.query(StockAdjustment).count() == 0
    assert db_session.query(OutboxTask).count() == 0
    assert db_session.query(IdempotencyKey).count() == 0
    assert db_session.query(DocumentSequence).count() == 0
    assert db_session.query(InvoiceSettings).one().current_sequence_no == 1
    assert db_session.get(InventoryItem, till["shirt_item"].id).quantity == 5

    monkeypatch.undo()
    order = order_service.place_pos_order(
        cashier_id="cashier-1",
        items=[{"product_id": till["shirt"].id, "quantity": 2}],
        payment_method="card",
        idempotency_key="till-1-0042",
    ).order

    # Numbers consumed by the failed attempts were never committed
    assert order.order_number == "POS-000001"
    assert order.invoice_number.endswith("-0001")
