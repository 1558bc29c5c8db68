from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class Coupon(db.Model):
    __tablename__ = "coupons"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_coupons_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    discount_type = db.Column(db.String(16), nullable=False, default="percentage")  # percentage | flat
    discount_value = db.Column(db.Numeric(12, 2), nullable=False)
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)
    min_order_value = db.Column(db.Numeric(12, 2), nullable=True)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    current_usage_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "max_discount_amount": money_str(self.max_discount_amount),
            "min_order_value": money_str(self.min_order_value),
            "valid_from": to_utc_z(self.valid_from),
            "valid_until": to_utc_z(self.valid_until),
            "is_active": self.is_active,
            "usage_limit": self.usage_limit,
            "current_usage_count": self.current_usage_count,
        }


class CouponRedemption(db.Model):
    """One row per (coupon, order). Written in the order's transaction."""
    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_redemptions_coupon_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False, index=True)
    coupon_code = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False)
    order_value = db.Column(db.Numeric(12, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coupon_id": self.coupon_id,
            "coupon_code": self.coupon_code,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "discount_amount": money_str(self.discount_amount),
            "order_value": money_str(self.order_value),
            "created_at": to_utc_z(self.created_at),
        }
