from __future__ import annotations

from ..extensions import db
from ..money import money_str, rate_str
from ..time_utils import to_utc_z, utcnow
from .inventory import STOCK_OUT


class PosProduct(db.Model):
    """
    POS-facing product row.

    MIRROR: quantity/status are copies of InventoryItem (item_id) written by
    stock_service.fan_out. selling_price/gst_rate are the POS price list and
    are owned here.
    """
    __tablename__ = "pos_products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_pos_products_sku"),
        db.Index("ix_pos_products_active_name", "is_active", "product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)
    item_code = db.Column(db.String(64), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STOCK_OUT)
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    item = db.relationship("InventoryItem", backref=db.backref("pos_products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_code": self.item_code,
            "sku": self.sku,
            "product_name": self.product_name,
            "selling_price": money_str(self.selling_price),
            "gst_rate": rate_str(self.gst_rate),
            "quantity": self.quantity,
            "status": self.status,
            "last_synced_at": to_utc_z(self.last_synced_at),
            "is_active": self.is_active,
        }


class OnlineProduct(db.Model):
    """Online catalog entry. Stock lives on its variants."""
    __tablename__ = "online_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_cod_available = db.Column(db.Boolean, nullable=False, default=True)
    free_shipping = db.Column(db.Boolean, nullable=False, default=False)
    shipping_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    variants = db.relationship(
        "OnlineProductVariant",
        backref="product",
        order_by="OnlineProductVariant.position",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def variant_at(self, position: int) -> "OnlineProductVariant | None":
        for variant in self.variants:
            if variant.position == position:
                return variant
        return None

    def to_dict(self, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "gst_rate": rate_str(self.gst_rate),
            "is_cod_available": self.is_cod_available,
            "free_shipping": self.free_shipping,
            "shipping_charge": money_str(self.shipping_charge),
            "is_active": self.is_active,
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class OnlineProductVariant(db.Model):
    """
    One purchasable variant of an OnlineProduct.

    MIRROR: stock_quantity copies InventoryItem.quantity (inventory_item_id);
    stock_status is derived from this variant's own low_stock_alert, not the
    item's threshold.
    """
    __tablename__ = "online_product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "position", name="uq_online_variants_product_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("online_products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    variant_name = db.Column(db.String(128), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    mrp = db.Column(db.Numeric(12, 2), nullable=True)

    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_status = db.Column(db.String(16), nullable=False, default=STOCK_OUT)
    low_stock_alert = db.Column(db.Integer, nullable=True)
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("online_variants", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "position": self.position,
            "variant_name": self.variant_name,
            "sku": self.sku,
            "selling_price": money_str(self.selling_price),
            "mrp": money_str(self.mrp),
            "inventory_item_id": self.inventory_item_id,
            "stock_quantity": self.stock_quantity,
            "stock_status": self.stock_status,
            "low_stock_alert": self.low_stock_alert,
            "last_synced_at": to_utc_z(self.last_synced_at),
        }
