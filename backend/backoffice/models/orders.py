from __future__ import annotations

from ..extensions import db
from ..money import money_str, rate_str
from ..time_utils import to_utc_z, utcnow


CHANNEL_POS = "pos"
CHANNEL_ONLINE = "online"


class Order(db.Model):
    """
    Committed order from either channel.

    IMMUTABILITY: lines, prices and tax are fixed at commit. Only
    payment_status / payment_reference / order_status / confirmed_at /
    completed_at change afterwards.

    IDENTITY:
    - order_number: from DocumentSequence (POS-000001 / ONL-000001)
    - invoice_number: from InvoiceSettings; NULL when invoicing is not configured
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.UniqueConstraint("invoice_number", name="uq_orders_invoice_number"),
        # Duplicate-window lookups
        db.Index("ix_orders_actor_channel_payment_created", "actor_key", "channel", "payment_method", "created_at"),
        db.Index("ix_orders_financial_year", "financial_year", "accounting_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    channel = db.Column(db.String(16), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)

    # Who submitted: storefront user id (online) or cashier id (POS)
    actor_key = db.Column(db.String(128), nullable=False)
    created_by = db.Column(db.String(128), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    delivery_address = db.Column(db.JSON, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    coupon_code = db.Column(db.String(64), nullable=True)
    coupon_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    gst_type = db.Column(db.String(16), nullable=False)  # cgst_sgst | igst
    seller_region = db.Column(db.String(128), nullable=True)
    buyer_region = db.Column(db.String(128), nullable=True)
    cgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    igst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")  # pending | completed
    payment_reference = db.Column(db.String(128), nullable=True)
    amount_received = db.Column(db.Numeric(12, 2), nullable=True)
    change_given = db.Column(db.Numeric(12, 2), nullable=True)

    order_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # sha256 over the (product, variant, quantity, discount) lines; POS duplicate detection
    basket_fingerprint = db.Column(db.String(64), nullable=True)

    financial_year = db.Column(db.String(16), nullable=True)
    accounting_period = db.Column(db.String(7), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        order_by="OrderLine.line_number",
        lazy=True,
        cascade="all, delete-orphan",
    )
    customer = db.relationship("Customer", backref=db.backref("orders", lazy="dynamic"))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "channel": self.channel,
            "order_number": self.order_number,
            "invoice_number": self.invoice_number,
            "actor_key": self.actor_key,
            "created_by": self.created_by,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "coupon_code": self.coupon_code,
            "coupon_discount": money_str(self.coupon_discount),
            "shipping_charge": money_str(self.shipping_charge),
            "gst_type": self.gst_type,
            "seller_region": self.seller_region,
            "buyer_region": self.buyer_region,
            "cgst_amount": money_str(self.cgst_amount),
            "sgst_amount": money_str(self.sgst_amount),
            "igst_amount": money_str(self.igst_amount),
            "total_tax": money_str(self.total_tax),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "payment_reference": self.payment_reference,
            "amount_received": money_str(self.amount_received),
            "change_given": money_str(self.change_given),
            "order_status": self.order_status,
            "financial_year": self.financial_year,
            "accounting_period": self.accounting_period,
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "completed_at": to_utc_z(self.completed_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """
    Denormalized order line. unit_price is tax-inclusive; base/tax columns
    keep 4 decimal places because rounding only happens on order totals.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_number", name="uq_order_lines_order_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    # POS: pos_products.id; online: online_products.id
    product_id = db.Column(db.Integer, nullable=False)
    variant_index = db.Column(db.Integer, nullable=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    base_unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    line_base = db.Column(db.Numeric(14, 4), nullable=False)
    cgst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    sgst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    igst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    cgst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    sgst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    igst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    line_total = db.Column(db.Numeric(14, 4), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "variant_index": self.variant_index,
            "inventory_item_id": self.inventory_item_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "discount_percent": rate_str(self.discount_percent),
            "gst_rate": rate_str(self.gst_rate),
            "base_unit_price": money_str(self.base_unit_price),
            "line_base": money_str(self.line_base),
            "cgst_rate": rate_str(self.cgst_rate),
            "sgst_rate": rate_str(self.sgst_rate),
            "igst_rate": rate_str(self.igst_rate),
            "cgst_amount": money_str(self.cgst_amount),
            "sgst_amount": money_str(self.sgst_amount),
            "igst_amount": money_str(self.igst_amount),
            "tax_amount": money_str(self.tax_amount),
            "line_total": money_str(self.line_total),
        }


class IdempotencyKey(db.Model):
    """
    Client-supplied submission key, scoped to one actor on one channel.
    Inserted in the order's transaction.
    """
    __tablename__ = "idempotency_keys"
    __table_args__ = (
        db.UniqueConstraint("actor_key", "channel", "key", name="uq_idempotency_keys_actor_channel_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False)
    actor_key = db.Column(db.String(128), nullable=False)
    channel = db.Column(db.String(16), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())


class PendingCheckout(db.Model):
    """
    Priced online order waiting for the gateway's payment confirmation.

    lines/pricing are JSON snapshots (Decimals as strings) so confirmation
    commits exactly what the buyer was shown.
    """
    __tablename__ = "pending_checkouts"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_pending_checkouts_order_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    delivery_address = db.Column(db.JSON, nullable=False)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True)
    lines = db.Column(db.JSON, nullable=False)
    pricing = db.Column(db.JSON, nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending | consumed
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "order_number": self.order_number,
            "user_id": self.user_id,
            "payment_method": self.payment_method,
            "total": money_str(self.total),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
