from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice.errors import OrderValidationError
from backoffice.models import (
    CartItem,
    Coupon,
    CouponRedemption,
    Customer,
    CustomerAddress,
    IdempotencyKey,
    InventoryItem,
    InvoiceSettings,
    LedgerEntry,
    OnlineProductVariant,
    Order,
    OutboxTask,
    PendingCheckout,
    StockAdjustment,
)
from backoffice.services import order_service, stock_service
from backoffice.services.customer_service import PROFILE_ADDRESS
from backoffice.time_utils import utcnow


@pytest.fixture
def shop(db_session, company, invoice_settings, make_item, make_online_product, customer, address, add_to_cart):
    """One item (stock 10) sold online at 590 incl. 18% GST, 50 shipping, one unit in the cart."""
    item = make_item(quantity=10, low_stock_threshold=3)
    product = make_online_product(item, low_stock_alert=9)
    add_to_cart(customer, product, quantity=1)
    return {"item": item, "product": product, "customer": customer, "address": address}


def test_cod_order_commits_everything(db_session, shop):
    result = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    order = result.order
    assert result.is_duplicate is False
    assert order.order_number == "ONL-000001"
    assert order.invoice_number.startswith("INV-")
    assert order.invoice_number.endswith("-0001")
    assert order.payment_method == "cod"
    assert order.payment_status == "pending"
    assert order.gst_type == "cgst_sgst"
    assert order.subtotal == Decimal("500.00")
    assert order.cgst_amount == order.sgst_amount == Decimal("45.00")
    assert order.shipping_charge == Decimal("50.00")
    assert order.total == Decimal("640.00")
    assert order.delivery_address["state"] == "Karnataka"
    assert order.financial_year is not None
    assert len(order.lines) == 1
    assert order.lines[0].base_unit_price == Decimal("500.0000")

    assert db_session.get(InventoryItem, shop["item"].id).quantity == 9
    adjustment = db_session.query(StockAdjustment).filter_by(order_id=order.id).one()
    assert adjustment.quantity_delta == -1
    assert adjustment.method == "sales_order"
    assert db_session.query(CartItem).count() == 0


def test_cod_side_effects_are_dispatched_after_commit(db_session, shop):
    result = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    tasks = db_session.query(OutboxTask).filter_by(order_id=result.order.id).all()
    assert {t.task_type for t in tasks} == {
        "stock.fan_out", "ledger.record_order", "customer.record_purchase", "notify.buyer", "notify.operators",
    }
    assert all(t.status == "done" for t in tasks)

    variant = db_session.query(OnlineProductVariant).filter_by(inventory_item_id=shop["item"].id).one()
    assert variant.stock_quantity == 9
    assert variant.stock_status == "low_stock"

    entry = db_session.query(LedgerEntry).filter_by(order_id=result.order.id).one()
    assert entry.transaction_id == "TXN-000001"
    assert entry.amount == Decimal("640.00")
    assert entry.reference_type == "online_order"

    customer = db_session.get(Customer, shop["customer"].id)
    assert customer.total_orders == 1
    assert customer.total_spent == Decimal("640.00")


def test_side_effects_wait_for_drain_when_inline_dispatch_is_off(app, db_session, shop, monkeypatch):
    monkeypatch.setitem(app.config, "OUTBOX_DISPATCH_INLINE", False)

    result = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    assert db_session.query(OutboxTask).filter_by(order_id=result.order.id, status="pending").count() == 5
    assert db_session.query(LedgerEntry).count() == 0
    # Record is authoritative; the mirror catches up on drain
    assert db_session.get(InventoryItem, shop["item"].id).quantity == 9
    variant = db_session.query(OnlineProductVariant).filter_by(inventory_item_id=shop["item"].id).one()
    assert variant.stock_quantity == 10


def test_double_submit_returns_first_order(db_session, shop):
    first = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)
    second = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    assert second.is_duplicate is True
    assert second.order.id == first.order.id
    assert db_session.query(Order).count() == 1
    assert db_session.get(InventoryItem, shop["item"].id).quantity == 9


def test_idempotency_key_outlives_duplicate_window(app, db_session, shop, add_to_cart, monkeypatch):
    monkeypatch.setitem(app.config, "DUPLICATE_ORDER_WINDOW_SECONDS", 0)

    first = order_service.place_cod_order(
        user_id="user-1", delivery_address_id=shop["address"].id, idempotency_key="key-1",
    )
    add_to_cart(shop["customer"], shop["product"], quantity=1)
    repeat = order_service.place_cod_order(
        user_id="user-1", delivery_address_id=shop["address"].id, idempotency_key="key-1",
    )
    fresh = order_service.place_cod_order(
        user_id="user-1", delivery_address_id=shop["address"].id, idempotency_key="key-2",
    )

    assert repeat.is_duplicate is True
    assert repeat.order.id == first.order.id
    assert fresh.is_duplicate is False
    assert fresh.order.order_number == "ONL-000002"
    assert db_session.query(IdempotencyKey).count() == 2


def test_empty_cart(db_session, shop):
    db_session.query(CartItem).delete()
    db_session.commit()

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    assert exc_info.value.code == "empty_cart"


def test_unknown_customer(db_session, shop):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="nobody", delivery_address_id=shop["address"].id)

    assert exc_info.value.code == "not_found"


def test_foreign_address_is_rejected(db_session, shop):
    other = Customer(user_id="user-2", name="Other")
    db_session.add(other)
    db_session.flush()
    foreign = CustomerAddress(
        customer_id=other.id, name="Other", address_line1="x", city="Pune", state="Maharashtra", pincode="411001",
    )
    db_session.add(foreign)
    db_session.commit()

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=foreign.id)

    assert exc_info.value.code == "invalid_address"


def test_profile_address_sentinel(db_session, shop):
    result = order_service.place_cod_order(user_id="user-1", delivery_address_id=PROFILE_ADDRESS)

    assert result.order.delivery_address["address_id"] == PROFILE_ADDRESS
    assert result.order.delivery_address["city"] == "Bengaluru"


def test_incomplete_profile_address(db_session, shop):
    shop["customer"].pincode = None
    db_session.commit()

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=PROFILE_ADDRESS)

    assert exc_info.value.code == "invalid_address"
    assert "pincode" in exc_info.value.details["missing"]


def test_cod_unavailable_for_product(db_session, shop):
    shop["product"].is_cod_available = False
    db_session.commit()

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    assert exc_info.value.code == "channel_unavailable"


def test_insufficient_stock_writes_nothing(db_session, shop):
    db_session.query(CartItem).update({"quantity": 11})
    db_session.commit()

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id)

    assert exc_info.value.code == "insufficient_stock"
    assert exc_info.value.details["available"] == 10
    assert db_session.query(Order).count() == 0
    assert db_session.query(StockAdjustment).count() == 0
    assert db_session.query(CartItem).count() == 1


def test_inter_state_delivery_is_igst(db_session, shop):
    address = shop["address"]
    address.state = "Maharashtra"
    db_session.commit()

    order = order_service.place_cod_order(user_id="user-1", delivery_address_id=address.id).order

    assert order.gst_type == "igst"
    assert order.igst_amount == Decimal("90.00")
    assert order.cgst_amount == order.sgst_amount == Decimal("0.00")
    assert order.lines[0].igst_rate == Decimal("18.00")


def test_free_shipping_product(db_session, shop):
    shop["product"].free_shipping = True
    db_session.commit()

    order = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id).order

    assert order.shipping_charge == Decimal("0.00")
    assert order.total == Decimal("590.00")


def test_coupon_discount_and_redemption(db_session, shop, make_coupon):
    coupon = make_coupon("SAVE10", discount_value=10, max_discount_amount=50, min_order_value=500)

    order = order_service.place_cod_order(
        user_id="user-1", delivery_address_id=shop["address"].id, coupon_code="save10",
    ).order

    # 10% of 590 = 59, capped at 50
    assert order.coupon_code == "SAVE10"
    assert order.coupon_discount == Decimal("50.00")
    assert order.total == Decimal("590.00")
    assert db_session.get(Coupon, coupon.id).current_usage_count == 1
    redemption = db_session.query(CouponRedemption).filter_by(order_id=order.id).one()
    assert redemption.discount_amount == Decimal("50.00")
    assert redemption.user_id == "user-1"


@pytest.mark.parametrize("overrides, code", [
    ({"is_active": False}, "coupon_invalid"),
    ({"usage_limit": 1, "current_usage_count": 1}, "coupon_invalid"),
    ({"min_order_value": 1000}, "coupon_below_minimum"),
])
def test_coupon_rules(db_session, shop, make_coupon, overrides, code):
    make_coupon("RULES", **overrides)

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(
            user_id="user-1", delivery_address_id=shop["address"].id, coupon_code="RULES",
        )

    assert exc_info.value.code == code
    assert db_session.query(Order).count() == 0


def test_expired_coupon(db_session, shop, make_coupon):
    make_coupon("OLD", valid_from=utcnow() - timedelta(days=10), valid_until=utcnow() - timedelta(days=1))

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id, coupon_code="OLD")

    assert exc_info.value.code == "coupon_expired"


def test_unknown_coupon(db_session, shop):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id, coupon_code="NOPE")

    assert exc_info.value.code == "coupon_invalid"


def test_order_without_invoice_settings_still_commits(db_session, shop):
    db_session.query(InvoiceSettings).update({"is_active": False})
    db_session.commit()

    order = order_service.place_cod_order(user_id="user-1", delivery_address_id=shop["address"].id).order

    assert order.invoice_number is None
    assert order.order_number == "ONL-000001"


# -----------------------------------------------------------------------------
# Deferred capture
# -----------------------------------------------------------------------------

def test_prepare_caches_priced_order_without_touching_stock(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="Razorpay",
    )

    data = prepared.to_dict()
    assert data["requires_payment"] is True
    assert data["order_number"] == "ONL-000001"
    assert data["amount"] == "640.00"
    assert data["payment_method"] == "razorpay"

    assert db_session.query(Order).count() == 0
    assert db_session.get(InventoryItem, shop["item"].id).quantity == 10
    checkout = db_session.query(PendingCheckout).one()
    assert checkout.status == "pending"
    assert db_session.query(CartItem).count() == 1


def test_prepare_rejects_unknown_payment_method(db_session, shop):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.prepare_online_payment(
            user_id="user-1", delivery_address_id=shop["address"].id, payment_method="paypal",
        )

    assert exc_info.value.code == "invalid"


def test_confirm_commits_cached_order(db_session, shop, make_coupon):
    make_coupon("SAVE10")
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="stripe", coupon_code="SAVE10",
    )

    result = order_service.confirm_online_payment(
        order_number=prepared.order_number, payment_id="pi_123", user_id="user-1",
    )

    order = result.order
    assert result.is_duplicate is False
    assert order.order_number == prepared.order_number
    assert order.payment_status == "completed"
    assert order.payment_reference == "pi_123"
    assert order.order_status == "confirmed"
    assert order.total == prepared.priced.total
    assert order.coupon_code == "SAVE10"
    assert order.confirmed_at is not None
    assert db_session.get(InventoryItem, shop["item"].id).quantity == 9
    assert db_session.query(CartItem).count() == 0
    assert db_session.query(PendingCheckout).one().status == "consumed"


def test_confirm_twice_is_idempotent(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="razorpay",
    )
    first = order_service.confirm_online_payment(
        order_number=prepared.order_number, payment_id="pay_1", user_id="user-1",
    )
    second = order_service.confirm_online_payment(
        order_number=prepared.order_number, payment_id="pay_1", user_id="user-1",
    )

    assert second.is_duplicate is True
    assert second.order.id == first.order.id
    assert db_session.query(Order).count() == 1
    assert db_session.get(InventoryItem, shop["item"].id).quantity == 9


def test_confirm_rechecks_stock(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="razorpay",
    )
    stock_service.manual_adjust(shop["item"].id, adjustment_type="decrease", quantity=10, reason="loss", actor="mgr")

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.confirm_online_payment(order_number=prepared.order_number, payment_id="pay_1", user_id="user-1")

    assert exc_info.value.code == "insufficient_stock"
    assert db_session.query(Order).count() == 0
    assert db_session.query(PendingCheckout).one().status == "pending"


def test_confirm_unknown_checkout(db_session, shop):
    with pytest.raises(OrderValidationError) as exc_info:
        order_service.confirm_online_payment(order_number="ONL-999999", payment_id="pay_1", user_id="user-1")

    assert exc_info.value.code == "not_found"


def test_confirm_by_other_user_is_not_found(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="razorpay",
    )

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.confirm_online_payment(order_number=prepared.order_number, payment_id="p", user_id="user-2")

    assert exc_info.value.code == "not_found"


def test_confirmed_order_cannot_be_claimed_by_other_user(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="razorpay",
    )
    order_service.confirm_online_payment(order_number=prepared.order_number, payment_id="pay_1", user_id="user-1")

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.confirm_online_payment(order_number=prepared.order_number, payment_id="pay_2", user_id="user-2")

    assert exc_info.value.code == "not_found"
    assert db_session.query(Order).one().payment_reference == "pay_1"


def test_confirm_without_user_is_invalid(db_session, shop):
    prepared = order_service.prepare_online_payment(
        user_id="user-1", delivery_address_id=shop["address"].id, payment_method="razorpay",
    )

    with pytest.raises(OrderValidationError) as exc_info:
        order_service.confirm_online_payment(order_number=prepared.order_number, payment_id="pay_1", user_id=None)

    assert exc_info.value.code == "invalid"
    assert db_session.query(PendingCheckout).one().status == "pending"
