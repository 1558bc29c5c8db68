from __future__ import annotations

from ..extensions import db
from ..money import money_str, rate_str
from ..time_utils import to_utc_z, utcnow


STOCK_IN = "in_stock"
STOCK_LOW = "low_stock"
STOCK_OUT = "out_of_stock"


class InventoryItem(db.Model):
    """
    Canonical stock record.

    SOURCE OF TRUTH: quantity/status here are authoritative. PosProduct and
    OnlineProductVariant carry copies that stock_service fans out after every
    change. Callers never assign quantity directly; they go through
    stock_service.apply_delta / write_delta_locked so that every change has a
    StockAdjustment row.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("item_code", name="uq_inventory_items_code"),
        db.Index("ix_inventory_items_status", "status"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")
    warehouse_name = db.Column(db.String(128), nullable=True)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=True)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), nullable=False, default=STOCK_OUT)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "category": self.category,
            "unit": self.unit,
            "warehouse_name": self.warehouse_name,
            "purchase_price": money_str(self.purchase_price),
            "gst_rate": rate_str(self.gst_rate),
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Immutable stock audit row. One per InventoryItem mutation.

    quantity_delta is the change as applied (after clamping at zero);
    requested_delta is what the caller asked for. They differ only when
    `clamped` is true.

    METHODS:
    - adjustment: manual increase/decrease with a reason
    - purchase_receipt: goods received
    - sales_order: stock leaving through a POS or online order
    - sales_return: stock restored for a cancelled/returned order
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_stock_adjustments_item_created", "item_id", "created_at"),
        db.Index("ix_stock_adjustments_method_created", "method", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # Snapshot of the item at adjustment time (reports survive renames)
    item_code = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    warehouse_name = db.Column(db.String(128), nullable=True)

    method = db.Column(db.String(32), nullable=False)
    adjustment_type = db.Column(db.String(16), nullable=False)  # increase | decrease | none
    requested_delta = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    clamped = db.Column(db.Boolean, nullable=False, default=False)

    reason = db.Column(db.String(32), nullable=True)
    reason_details = db.Column(db.Text, nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    order_number = db.Column(db.String(64), nullable=True, index=True)

    adjusted_by = db.Column(db.String(128), nullable=False, default="system")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    item = db.relationship("InventoryItem", backref=db.backref("adjustments", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "category": self.category,
            "warehouse_name": self.warehouse_name,
            "method": self.method,
            "adjustment_type": self.adjustment_type,
            "requested_delta": self.requested_delta,
            "quantity_delta": self.quantity_delta,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "clamped": self.clamped,
            "reason": self.reason,
            "reason_details": self.reason_details,
            "notes": self.notes,
            "reference": self.reference,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "adjusted_by": self.adjusted_by,
            "created_at": to_utc_z(self.created_at),
        }
