from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Online buyer (or a known POS customer).

    user_id is the identity handed to us by the storefront auth layer.
    The profile address doubles as a delivery address when checkout uses the
    "profile-address" sentinel.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_customers_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    # Profile address
    address_line1 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)
    country = db.Column(db.String(64), nullable=True)

    # Purchase analytics
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    last_order_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address_line1": self.address_line1,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "country": self.country,
            "total_orders": self.total_orders,
            "total_spent": money_str(self.total_spent),
            "last_order_date": to_utc_z(self.last_order_date),
        }


class CustomerAddress(db.Model):
    __tablename__ = "customer_addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    alternate_phone = db.Column(db.String(32), nullable=True)
    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255), nullable=True)
    landmark = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=False)
    state = db.Column(db.String(128), nullable=False)
    pincode = db.Column(db.String(16), nullable=False)
    country = db.Column(db.String(64), nullable=False, default="India")
    address_type = db.Column(db.String(16), nullable=False, default="home")
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    customer = db.relationship("Customer", backref=db.backref("addresses", lazy=True))

    def to_snapshot(self) -> dict:
        """Copy stored on the order; later edits to the address don't touch it."""
        return {
            "address_id": self.id,
            "name": self.name,
            "phone": self.phone,
            "alternate_phone": self.alternate_phone,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "landmark": self.landmark,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "country": self.country,
            "address_type": self.address_type,
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "product_id", "variant_index", name="uq_cart_items_customer_variant"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("online_products.id"), nullable=False)
    variant_index = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "variant_index": self.variant_index,
            "quantity": self.quantity,
        }
