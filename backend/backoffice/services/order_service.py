# Overview: Order finalization for both channels. Validates the basket, prices it,
# guards against duplicate submission, commits order + stock + invoice number in
# one transaction, then hands side effects to the outbox.
#
# Flow per submission:
#   guard (in-flight + trailing window + idempotency key)
#   -> validate basket / address / stock / coupon
#   -> price (tax_service)
#   -> commit: invoice no, order, lines, stock decrements, coupon, outbox tasks
#   -> release guard -> dispatch side effects (best effort)

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    OrderCommitError,
    OrderErrorCode,
    OrderValidationError,
    StockItemNotFoundError,
)
from ..extensions import db
from ..models import (
    CHANNEL_ONLINE,
    CHANNEL_POS,
    CompanySettings,
    Coupon,
    Customer,
    IdempotencyKey,
    InventoryItem,
    OnlineProduct,
    Order,
    OrderLine,
    PendingCheckout,
    PosProduct,
)
from ..money import HUNDRED, ZERO, quantize_money, to_decimal
from ..time_utils import utcnow
from . import coupon_service, customer_service, outbox_service
from .concurrency import begin_write, run_with_retry
from .document_service import allocate_document_number
from .invoice_service import allocate_invoice_number, get_financial_period
from .order_guard import (
    basket_fingerprint,
    find_by_idempotency_key,
    find_recent_duplicate,
    guard_key,
    order_guard,
)
from .stock_service import AdjustmentContext, METHOD_SALES_ORDER, load_item_for_update, write_delta_locked
from .tax_service import PricedOrder, TaxableLine, price_order


PAYMENT_COD = "cod"
DEFERRED_PAYMENT_METHODS = ("razorpay", "stripe")
POS_PAYMENT_METHODS = ("cash", "card", "upi")

ORDER_NUMBER_PREFIX = {CHANNEL_POS: "POS", CHANNEL_ONLINE: "ONL"}
ORDER_SEQUENCE_TYPE = {CHANNEL_POS: "POS_ORDER", CHANNEL_ONLINE: "ONLINE_ORDER"}


@dataclass
class BasketLine:
    """A validated basket line, before pricing."""
    product_id: int
    inventory_item_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    gst_rate: Decimal
    discount_percent: Decimal = ZERO
    variant_index: int | None = None
    variant_name: str | None = None
    sku: str | None = None

    def taxable(self) -> TaxableLine:
        return TaxableLine(
            quantity=self.quantity,
            unit_price=self.unit_price,
            gst_rate=self.gst_rate,
            discount_percent=self.discount_percent,
            key=f"{self.product_id}:{'' if self.variant_index is None else self.variant_index}",
        )

    def to_payload(self) -> dict:
        data = asdict(self)
        for name in ("unit_price", "gst_rate", "discount_percent"):
            data[name] = str(data[name])
        return data

    @classmethod
    def from_payload(cls, data: dict) -> "BasketLine":
        data = dict(data)
        for name in ("unit_price", "gst_rate", "discount_percent"):
            data[name] = Decimal(data[name])
        return cls(**data)


@dataclass
class Basket:
    actor_key: str
    lines: list
    priced: PricedOrder
    customer: Customer | None = None
    delivery_address: dict | None = None
    coupon: coupon_service.AppliedCoupon | None = None
    fingerprint: str | None = None
    customer_snapshot: dict = field(default_factory=dict)
    # Paid deferred checkouts keep the coupon they were quoted
    recheck_coupon: bool = True


@dataclass
class OrderResult:
    order: Order
    is_duplicate: bool = False

    def to_dict(self) -> dict:
        return {"order": self.order.to_dict(), "is_duplicate": self.is_duplicate}


@dataclass
class PreparedCheckout:
    order_number: str
    payment_method: str
    priced: PricedOrder

    def to_dict(self) -> dict:
        return {
            "requires_payment": True,
            "order_number": self.order_number,
            "payment_method": self.payment_method,
            "amount": str(self.priced.total),
            "currency": "INR",
            "pricing": self.priced.to_payload(),
        }


def get_seller_region() -> str | None:
    company = db.session.query(CompanySettings).order_by(CompanySettings.id).first()
    if company and company.state:
        return company.state
    return current_app.config.get("SELLER_REGION") or None


# =============================================================================
# Validation helpers
# =============================================================================

def _positive_int(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise OrderValidationError(OrderErrorCode.INVALID, f"{field_name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise OrderValidationError(OrderErrorCode.INVALID, f"{field_name} must be a positive integer") from None
    if number <= 0 or (isinstance(value, float) and not value.is_integer()):
        raise OrderValidationError(OrderErrorCode.INVALID, f"{field_name} must be a positive integer")
    return number


def _money_input(value, field_name: str) -> Decimal:
    try:
        amount = to_decimal(value, field=field_name)
    except ValueError as exc:
        raise OrderValidationError(OrderErrorCode.INVALID, str(exc)) from None
    if amount < ZERO:
        raise OrderValidationError(OrderErrorCode.INVALID, f"{field_name} must not be negative")
    return amount


def check_availability(lines: list[BasketLine]) -> None:
    """
    Compare requested quantities (summed per inventory item) to live stock.
    Advisory read; the commit re-checks under the row lock.
    """
    requested: dict[int, int] = {}
    names: dict[int, str] = {}
    for line in lines:
        requested[line.inventory_item_id] = requested.get(line.inventory_item_id, 0) + line.quantity
        names.setdefault(line.inventory_item_id, line.product_name)

    for item_id, quantity in requested.items():
        item = db.session.get(InventoryItem, item_id)
        if item is None:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND, "Inventory item not found", {"inventory_item_id": item_id}
            )
        if item.quantity < quantity:
            raise OrderValidationError(
                OrderErrorCode.INSUFFICIENT_STOCK,
                f"Insufficient stock for {names[item_id]}. Available: {item.quantity}",
                {"inventory_item_id": item_id, "available": item.quantity, "requested": quantity},
            )


def _shipping_charge(products: list[OnlineProduct]) -> Decimal:
    """Highest shipping charge among products without free shipping; 0 if all ship free."""
    charges = [to_decimal(p.shipping_charge) for p in products if not p.free_shipping]
    return max(charges) if charges else ZERO


# =============================================================================
# Basket building
# =============================================================================

def build_online_basket(user_id, delivery_address_id, coupon_code=None, *, require_cod: bool) -> Basket:
    customer = customer_service.get_customer_by_user_id(user_id)

    cart = customer_service.load_cart(customer.id)
    if not cart:
        raise OrderValidationError(OrderErrorCode.EMPTY_CART, "Cart is empty")

    address = customer_service.resolve_delivery_address(customer, delivery_address_id)

    lines: list[BasketLine] = []
    products: dict[int, OnlineProduct] = {}
    for cart_item in cart:
        product = db.session.get(OnlineProduct, cart_item.product_id)
        if product is None or not product.is_active:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND, "Product not found", {"product_id": cart_item.product_id}
            )
        variant = product.variant_at(cart_item.variant_index)
        if variant is None:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND,
                f"Variant not found for {product.name}",
                {"product_id": product.id, "variant_index": cart_item.variant_index},
            )
        if require_cod and not product.is_cod_available:
            raise OrderValidationError(
                OrderErrorCode.CHANNEL_UNAVAILABLE,
                f"Cash on Delivery is not available for {product.name}",
                {"product_id": product.id},
            )
        if variant.inventory_item_id is None:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND,
                f"{product.name} ({variant.variant_name}) is not linked to inventory",
                {"product_id": product.id, "variant_index": variant.position},
            )
        products[product.id] = product
        lines.append(BasketLine(
            product_id=product.id,
            variant_index=variant.position,
            inventory_item_id=variant.inventory_item_id,
            product_name=product.name,
            variant_name=variant.variant_name,
            sku=variant.sku,
            quantity=_positive_int(cart_item.quantity, "quantity"),
            unit_price=to_decimal(variant.selling_price),
            gst_rate=to_decimal(product.gst_rate),
        ))

    check_availability(lines)

    basket_subtotal = sum((line.unit_price * line.quantity for line in lines), ZERO)
    coupon = coupon_service.resolve_coupon(coupon_code, basket_subtotal)

    priced = price_order(
        [line.taxable() for line in lines],
        get_seller_region(),
        address.get("state"),
        coupon_discount=coupon.discount if coupon else ZERO,
        shipping_charge=_shipping_charge(list(products.values())),
    )
    return Basket(
        actor_key=str(user_id),
        lines=lines,
        priced=priced,
        customer=customer,
        delivery_address=address,
        coupon=coupon,
        customer_snapshot={
            "customer_name": customer.name,
            "customer_email": customer.email,
            "customer_phone": customer.phone,
        },
    )


def resolve_pos_lines(items) -> list[BasketLine]:
    if not items:
        raise OrderValidationError(OrderErrorCode.EMPTY_CART, "Order must have at least one item")

    lines: list[BasketLine] = []
    for raw in items:
        if not isinstance(raw, dict):
            raise OrderValidationError(OrderErrorCode.INVALID, "Each item must be an object")
        product_id = raw.get("product_id")
        product = db.session.get(PosProduct, product_id) if product_id is not None else None
        if product is None or not product.is_active:
            raise OrderValidationError(OrderErrorCode.NOT_FOUND, "Product not found", {"product_id": product_id})

        item_id = product.item_id
        if item_id is None and product.item_code:
            item = db.session.query(InventoryItem).filter_by(item_code=product.item_code).first()
            item_id = item.id if item else None
        if item_id is None:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND,
                f"{product.product_name} is not linked to inventory",
                {"product_id": product.id},
            )

        discount_percent = _money_input(raw.get("discount_percent", 0), "discount_percent")
        if discount_percent > HUNDRED:
            raise OrderValidationError(OrderErrorCode.INVALID, "discount_percent must be between 0 and 100")

        gst_rate = product.gst_rate
        if gst_rate is None:
            gst_rate = db.session.get(InventoryItem, item_id).gst_rate

        lines.append(BasketLine(
            product_id=product.id,
            inventory_item_id=item_id,
            product_name=product.product_name,
            sku=product.sku,
            quantity=_positive_int(raw.get("quantity"), "quantity"),
            unit_price=to_decimal(product.selling_price),
            gst_rate=to_decimal(gst_rate),
            discount_percent=discount_percent,
        ))

    check_availability(lines)
    return lines


# =============================================================================
# Commit
# =============================================================================

def _persist_order(
    basket: Basket,
    *,
    channel: str,
    payment_method: str,
    payment_status: str,
    order_status: str,
    created_by: str | None,
    order_number: str | None = None,
    payment_reference: str | None = None,
    amount_received: Decimal | None = None,
    change_given: Decimal | None = None,
    idempotency_key: str | None = None,
    checkout: PendingCheckout | None = None,
) -> Order:
    """
    The atomic region. Everything here commits together or not at all.
    """
    begin_write()
    now = utcnow()
    priced = basket.priced

    number = order_number or allocate_document_number(
        document_type=ORDER_SEQUENCE_TYPE[channel], prefix=ORDER_NUMBER_PREFIX[channel]
    )
    invoice_number = allocate_invoice_number(now)
    period = get_financial_period(now)

    order = Order(
        channel=channel,
        order_number=number,
        invoice_number=invoice_number,
        actor_key=basket.actor_key,
        created_by=created_by,
        customer_id=basket.customer.id if basket.customer else None,
        delivery_address=basket.delivery_address,
        subtotal=priced.rounded("subtotal"),
        discount=priced.rounded("discount"),
        coupon_code=basket.coupon.code if basket.coupon else None,
        coupon_discount=priced.rounded("coupon_discount"),
        shipping_charge=priced.rounded("shipping_charge"),
        gst_type=priced.gst_type,
        seller_region=priced.seller_region,
        buyer_region=priced.buyer_region,
        cgst_amount=priced.rounded("cgst_amount"),
        sgst_amount=priced.rounded("sgst_amount"),
        igst_amount=priced.rounded("igst_amount"),
        total_tax=priced.rounded("total_tax"),
        total=priced.total,
        payment_method=payment_method,
        payment_status=payment_status,
        payment_reference=payment_reference,
        amount_received=amount_received,
        change_given=change_given,
        order_status=order_status,
        basket_fingerprint=basket.fingerprint,
        financial_year=period.financial_year,
        accounting_period=period.accounting_period,
        created_at=now,
        confirmed_at=now if payment_status == "completed" else None,
        completed_at=now if order_status == "completed" else None,
        **basket.customer_snapshot,
    )
    db.session.add(order)
    db.session.flush()

    # Stock: lock each item once, check the summed quantity, then decrement.
    per_item: dict[int, int] = {}
    for line in basket.lines:
        per_item[line.inventory_item_id] = per_item.get(line.inventory_item_id, 0) + line.quantity

    for item_id in sorted(per_item):
        try:
            item = load_item_for_update(item_id)
        except StockItemNotFoundError:
            raise OrderValidationError(
                OrderErrorCode.NOT_FOUND, "Inventory item not found", {"inventory_item_id": item_id}
            ) from None
        if item.quantity < per_item[item_id]:
            raise OrderValidationError(
                OrderErrorCode.INSUFFICIENT_STOCK,
                f"Insufficient stock for {item.item_name}. Available: {item.quantity}",
                {"inventory_item_id": item_id, "available": item.quantity, "requested": per_item[item_id]},
            )
        write_delta_locked(item, -per_item[item_id], AdjustmentContext(
            method=METHOD_SALES_ORDER,
            actor=created_by or basket.actor_key,
            order_id=order.id,
            order_number=invoice_number or number,
            notes=f"{channel.upper()} order {number}",
        ))

    for line_number, (line, priced_line) in enumerate(zip(basket.lines, priced.lines), start=1):
        db.session.add(OrderLine(
            order_id=order.id,
            line_number=line_number,
            product_id=line.product_id,
            variant_index=line.variant_index,
            inventory_item_id=line.inventory_item_id,
            product_name=line.product_name,
            variant_name=line.variant_name,
            sku=line.sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_percent=line.discount_percent,
            gst_rate=line.gst_rate,
            base_unit_price=priced_line.base_unit_price,
            line_base=priced_line.line_base,
            cgst_rate=priced_line.cgst_rate,
            sgst_rate=priced_line.sgst_rate,
            igst_rate=priced_line.igst_rate,
            cgst_amount=priced_line.cgst_amount,
            sgst_amount=priced_line.sgst_amount,
            igst_amount=priced_line.igst_amount,
            tax_amount=priced_line.tax_amount,
            line_total=priced_line.line_total,
        ))

    if basket.coupon:
        coupon_service.redeem_locked(
            basket.coupon, order=order, user_id=basket.actor_key, recheck=basket.recheck_coupon,
        )

    if idempotency_key:
        db.session.add(IdempotencyKey(
            key=idempotency_key,
            actor_key=basket.actor_key,
            channel=channel,
            order_id=order.id,
        ))

    if checkout is not None:
        checkout.status = "consumed"
        checkout.consumed_at = now

    if channel == CHANNEL_ONLINE and basket.customer:
        customer_service.clear_cart(basket.customer.id)

    outbox_service.enqueue_order_side_effects(order, per_item.keys())

    db.session.commit()
    return order


def _commit(basket: Basket, *, idempotency_key: str | None = None, **kwargs) -> OrderResult:
    try:
        order = run_with_retry(
            lambda: _persist_order(basket, idempotency_key=idempotency_key, **kwargs)
        )
    except IntegrityError as exc:
        prior = find_by_idempotency_key(
            idempotency_key, actor_key=basket.actor_key, channel=kwargs["channel"],
        )
        if prior is not None:
            current_app.logger.warning(
                "Idempotency key %s already used by order %s", idempotency_key, prior.order_number,
            )
            return OrderResult(prior, is_duplicate=True)
        current_app.logger.exception("Order commit failed for %s", basket.actor_key)
        raise OrderCommitError() from exc
    except SQLAlchemyError as exc:
        current_app.logger.exception("Order commit failed for %s", basket.actor_key)
        raise OrderCommitError() from exc

    current_app.logger.info(
        "Order %s committed (%s, %s, total %s, invoice %s)",
        order.order_number, order.channel, order.payment_method, order.total, order.invoice_number,
    )
    return OrderResult(order)


def dispatch_side_effects(order_id: int) -> None:
    """Best-effort inline run of an order's outbox tasks. Never raises."""
    if not current_app.config.get("OUTBOX_DISPATCH_INLINE", True):
        return
    try:
        outbox_service.dispatch_pending(order_id=order_id)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Inline side-effect dispatch failed for order %s", order_id)


def _existing_submission(
    *,
    actor_key: str,
    channel: str,
    payment_method: str,
    idempotency_key: str | None,
    fingerprint: str | None = None,
) -> Order | None:
    prior = find_by_idempotency_key(idempotency_key, actor_key=actor_key, channel=channel)
    if prior is not None:
        return prior
    return find_recent_duplicate(
        actor_key=actor_key,
        channel=channel,
        payment_method=payment_method,
        fingerprint=fingerprint,
    )


# =============================================================================
# Entry points
# =============================================================================

def place_cod_order(
    *,
    user_id,
    delivery_address_id,
    coupon_code: str | None = None,
    idempotency_key: str | None = None,
) -> OrderResult:
    """
    Online cash-on-delivery order, captured immediately (payment pending).

    The duplicate check runs before the cart is read: the first submission
    empties the cart, so a double-click must be answered from the committed
    order rather than failing with "cart is empty".
    """
    actor_key = str(user_id)
    with order_guard.hold(guard_key(CHANNEL_ONLINE, actor_key)):
        prior = _existing_submission(
            actor_key=actor_key,
            channel=CHANNEL_ONLINE,
            payment_method=PAYMENT_COD,
            idempotency_key=idempotency_key,
        )
        if prior is not None:
            current_app.logger.warning(
                "Duplicate COD submission from %s; returning order %s", actor_key, prior.order_number,
            )
            return OrderResult(prior, is_duplicate=True)

        basket = build_online_basket(user_id, delivery_address_id, coupon_code, require_cod=True)
        result = _commit(
            basket,
            channel=CHANNEL_ONLINE,
            payment_method=PAYMENT_COD,
            payment_status="pending",
            order_status="pending",
            created_by=actor_key,
            idempotency_key=idempotency_key,
        )

    if not result.is_duplicate:
        dispatch_side_effects(result.order.id)
    return result


def prepare_online_payment(
    *,
    user_id,
    delivery_address_id,
    payment_method: str,
    coupon_code: str | None = None,
) -> PreparedCheckout:
    """
    Deferred capture, step 1: validate, price, reserve an order number and
    cache the priced basket. Stock is not touched until confirmation.
    """
    method = (payment_method or "").strip().lower()
    if method not in DEFERRED_PAYMENT_METHODS:
        raise OrderValidationError(
            OrderErrorCode.INVALID,
            "Unsupported payment method",
            {"payment_method": payment_method, "allowed": list(DEFERRED_PAYMENT_METHODS)},
        )

    basket = build_online_basket(user_id, delivery_address_id, coupon_code, require_cod=False)

    def _op() -> str:
        begin_write()
        number = allocate_document_number(
            document_type=ORDER_SEQUENCE_TYPE[CHANNEL_ONLINE], prefix=ORDER_NUMBER_PREFIX[CHANNEL_ONLINE]
        )
        db.session.add(PendingCheckout(
            order_number=number,
            user_id=basket.actor_key,
            customer_id=basket.customer.id,
            payment_method=method,
            delivery_address=basket.delivery_address,
            coupon_id=basket.coupon.coupon_id if basket.coupon else None,
            lines=[line.to_payload() for line in basket.lines],
            pricing=basket.priced.to_payload(),
            total=basket.priced.total,
        ))
        db.session.commit()
        return number

    order_number = run_with_retry(_op)
    current_app.logger.info(
        "Checkout %s prepared for %s via %s (amount %s)", order_number, basket.actor_key, method, basket.priced.total,
    )
    return PreparedCheckout(order_number=order_number, payment_method=method, priced=basket.priced)


def _basket_from_checkout(checkout: PendingCheckout) -> Basket:
    customer = db.session.get(Customer, checkout.customer_id)
    coupon = None
    priced = PricedOrder.from_payload(checkout.pricing)
    if checkout.coupon_id:
        coupon_row = db.session.get(Coupon, checkout.coupon_id)
        lines_value = sum(
            (Decimal(line["unit_price"]) * int(line["quantity"]) for line in checkout.lines), ZERO
        )
        coupon = coupon_service.AppliedCoupon(
            coupon_id=checkout.coupon_id,
            code=coupon_row.code if coupon_row else "",
            discount=priced.coupon_discount,
            order_value=lines_value,
        )
    return Basket(
        actor_key=checkout.user_id,
        lines=[BasketLine.from_payload(line) for line in checkout.lines],
        priced=priced,
        customer=customer,
        delivery_address=checkout.delivery_address,
        coupon=coupon,
        recheck_coupon=False,
        customer_snapshot={
            "customer_name": customer.name if customer else None,
            "customer_email": customer.email if customer else None,
            "customer_phone": customer.phone if customer else None,
        },
    )


def confirm_online_payment(*, order_number: str, payment_id: str, user_id) -> OrderResult:
    """
    Deferred capture, step 2: the gateway reported success. Commits the cached
    order. Confirming an order that already exists only marks it paid.

    Only the user who prepared the checkout can confirm it; anyone else gets
    not_found.
    """
    if not order_number or not payment_id or not user_id:
        raise OrderValidationError(
            OrderErrorCode.INVALID, "order_number, payment_id and user_id are required",
        )
    not_found = OrderValidationError(
        OrderErrorCode.NOT_FOUND, "Checkout not found", {"order_number": order_number},
    )

    existing = db.session.query(Order).filter_by(order_number=order_number).first()
    if existing is not None:
        if existing.actor_key != str(user_id):
            raise not_found
        return _mark_paid(existing, payment_id)

    checkout = db.session.query(PendingCheckout).filter_by(order_number=order_number).first()
    if checkout is None or checkout.user_id != str(user_id):
        raise not_found

    with order_guard.hold(guard_key(CHANNEL_ONLINE, checkout.user_id)):
        # Re-read under the guard: a concurrent confirmation may have committed.
        existing = db.session.query(Order).filter_by(order_number=order_number).first()
        if existing is not None:
            return _mark_paid(existing, payment_id)

        checkout = (
            db.session.query(PendingCheckout)
            .filter_by(order_number=order_number)
            .populate_existing()
            .first()
        )
        basket = _basket_from_checkout(checkout)
        result = _commit(
            basket,
            channel=CHANNEL_ONLINE,
            payment_method=checkout.payment_method,
            payment_status="completed",
            order_status="confirmed",
            created_by=checkout.user_id,
            order_number=checkout.order_number,
            payment_reference=payment_id,
            checkout=checkout,
        )

    dispatch_side_effects(result.order.id)
    return result


def _mark_paid(order: Order, payment_id: str) -> OrderResult:
    if order.payment_status != "completed":
        order.payment_status = "completed"
        order.payment_reference = payment_id
        order.confirmed_at = utcnow()
        db.session.commit()
        current_app.logger.info("Order %s marked paid (%s)", order.order_number, payment_id)
    return OrderResult(order, is_duplicate=True)


def place_pos_order(
    *,
    cashier_id,
    items,
    payment_method: str,
    customer: dict | None = None,
    discount=0,
    amount_received=None,
    idempotency_key: str | None = None,
) -> OrderResult:
    """
    In-store order. Seller and buyer are in the same state, payment is taken
    at the till, so the order is completed on commit.
    """
    if cashier_id is None or str(cashier_id).strip() == "":
        raise OrderValidationError(OrderErrorCode.INVALID, "created_by is required")
    method = (payment_method or "").strip().lower()
    if method not in POS_PAYMENT_METHODS:
        raise OrderValidationError(
            OrderErrorCode.INVALID,
            "Unsupported payment method",
            {"payment_method": payment_method, "allowed": list(POS_PAYMENT_METHODS)},
        )

    lines = resolve_pos_lines(items or [])
    order_discount = _money_input(discount, "discount")
    received = _money_input(amount_received, "amount_received") if amount_received is not None else None

    actor_key = str(cashier_id)
    fingerprint = basket_fingerprint(
        (line.product_id, line.variant_index, line.quantity, line.discount_percent) for line in lines
    )

    with order_guard.hold(guard_key(CHANNEL_POS, actor_key)):
        prior = _existing_submission(
            actor_key=actor_key,
            channel=CHANNEL_POS,
            payment_method=method,
            idempotency_key=idempotency_key,
            fingerprint=fingerprint,
        )
        if prior is not None:
            current_app.logger.warning(
                "Duplicate POS submission from %s; returning order %s", actor_key, prior.order_number,
            )
            return OrderResult(prior, is_duplicate=True)

        seller_region = get_seller_region()
        priced = price_order(
            [line.taxable() for line in lines],
            seller_region,
            seller_region,
            discount=order_discount,
        )
        if priced.total < ZERO:
            raise OrderValidationError(OrderErrorCode.INVALID, "Discount exceeds order value")

        change_given = None
        if received is not None:
            if method == "cash" and received < priced.total:
                raise OrderValidationError(
                    OrderErrorCode.INVALID,
                    "Amount received is less than the order total",
                    {"total": str(priced.total), "amount_received": str(quantize_money(received))},
                )
            change_given = quantize_money(max(ZERO, received - priced.total))

        customer_row, snapshot = _pos_customer(customer)
        basket = Basket(
            actor_key=actor_key,
            lines=lines,
            priced=priced,
            customer=customer_row,
            fingerprint=fingerprint,
            customer_snapshot=snapshot,
        )
        result = _commit(
            basket,
            channel=CHANNEL_POS,
            payment_method=method,
            payment_status="completed",
            order_status="completed",
            created_by=actor_key,
            amount_received=quantize_money(received) if received is not None else None,
            change_given=change_given,
            idempotency_key=idempotency_key,
        )

    if not result.is_duplicate:
        dispatch_side_effects(result.order.id)
    return result


def _pos_customer(data: dict | None) -> tuple[Customer | None, dict]:
    """Optional walk-in details; a known customer (by id) also gets analytics."""
    if not data:
        return None, {}
    customer = None
    if data.get("id") is not None:
        customer = db.session.get(Customer, data["id"])
        if customer is None:
            raise OrderValidationError(OrderErrorCode.NOT_FOUND, "Customer not found", {"customer_id": data["id"]})
    return customer, {
        "customer_name": data.get("name") or (customer.name if customer else None),
        "customer_email": data.get("email") or (customer.email if customer else None),
        "customer_phone": data.get("phone") or (customer.phone if customer else None),
    }


def get_order(order_number: str) -> Order | None:
    return db.session.query(Order).filter_by(order_number=order_number).first()
