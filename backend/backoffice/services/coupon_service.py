# Overview: Coupon validation, discount calculation and redemption.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import OrderErrorCode, OrderValidationError
from ..extensions import db
from ..models import Coupon, CouponRedemption
from ..money import HUNDRED, ZERO, quantize_money, to_decimal
from ..time_utils import utcnow
from .concurrency import lock_for_update


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FLAT = "flat"


@dataclass(frozen=True)
class AppliedCoupon:
    coupon_id: int
    code: str
    discount: Decimal
    order_value: Decimal


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """
    Percentage coupons are capped by max_discount_amount (if set); flat
    coupons give their value. Never more than the subtotal.
    """
    subtotal = to_decimal(subtotal)
    value = to_decimal(coupon.discount_value)
    if coupon.discount_type == DISCOUNT_PERCENTAGE:
        discount = subtotal * value / HUNDRED
        if coupon.max_discount_amount is not None:
            discount = min(discount, to_decimal(coupon.max_discount_amount))
    else:
        discount = value
    return quantize_money(max(ZERO, min(discount, subtotal)))


def _check_usable(coupon: Coupon, now: datetime) -> None:
    if not coupon.is_active:
        raise OrderValidationError(OrderErrorCode.COUPON_INVALID, "Coupon is not active", {"code": coupon.code})
    if coupon.valid_from and now < coupon.valid_from:
        raise OrderValidationError(OrderErrorCode.COUPON_INVALID, "Coupon is not valid yet", {"code": coupon.code})
    if coupon.valid_until and now > coupon.valid_until:
        raise OrderValidationError(OrderErrorCode.COUPON_EXPIRED, "Coupon has expired", {"code": coupon.code})
    if coupon.usage_limit is not None and coupon.current_usage_count >= coupon.usage_limit:
        raise OrderValidationError(
            OrderErrorCode.COUPON_INVALID, "Coupon usage limit reached", {"code": coupon.code}
        )


def resolve_coupon(code: str | None, basket_subtotal, *, now: datetime | None = None) -> AppliedCoupon | None:
    """
    Validate a coupon code against a basket subtotal (GST-inclusive).

    No code -> None. Any failing rule raises OrderValidationError with a
    coupon_* code.
    """
    if code is None or not str(code).strip():
        return None
    code = str(code).strip()
    now = now or utcnow()

    coupon = db.session.query(Coupon).filter(func.upper(Coupon.code) == code.upper()).first()
    if not coupon:
        raise OrderValidationError(OrderErrorCode.COUPON_INVALID, "Invalid coupon code", {"code": code})

    _check_usable(coupon, now)

    subtotal = to_decimal(basket_subtotal)
    if coupon.min_order_value is not None and subtotal < to_decimal(coupon.min_order_value):
        raise OrderValidationError(
            OrderErrorCode.COUPON_BELOW_MINIMUM,
            f"Minimum order value of {quantize_money(coupon.min_order_value)} required for this coupon",
            {"code": coupon.code, "min_order_value": str(quantize_money(coupon.min_order_value))},
        )

    return AppliedCoupon(
        coupon_id=coupon.id,
        code=coupon.code,
        discount=compute_discount(coupon, subtotal),
        order_value=subtotal,
    )


def redeem_locked(applied: AppliedCoupon, *, order, user_id: str | None, recheck: bool = True) -> CouponRedemption:
    """
    Record a redemption inside the order transaction. The coupon row is locked
    and, unless recheck is off, its rules re-checked so concurrent orders
    can't overrun the usage limit.
    """
    coupon = lock_for_update(db.session.query(Coupon).filter_by(id=applied.coupon_id)).first()
    if not coupon:
        raise OrderValidationError(OrderErrorCode.COUPON_INVALID, "Invalid coupon code", {"code": applied.code})
    if recheck:
        _check_usable(coupon, utcnow())

    coupon.current_usage_count = (coupon.current_usage_count or 0) + 1
    redemption = CouponRedemption(
        coupon_id=coupon.id,
        coupon_code=coupon.code,
        order_id=order.id,
        order_number=order.order_number,
        user_id=user_id,
        discount_amount=applied.discount,
        order_value=quantize_money(applied.order_value),
    )
    db.session.add(redemption)
    return redemption
