# Overview: Customer lookups, delivery address resolution and purchase analytics.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import OrderErrorCode, OrderValidationError
from ..extensions import db
from ..models import CartItem, Customer, CustomerAddress
from ..money import to_decimal


PROFILE_ADDRESS = "profile-address"
PROFILE_REQUIRED_FIELDS = ("address_line1", "city", "state", "pincode", "country")


def get_customer_by_user_id(user_id) -> Customer:
    if user_id is None or str(user_id).strip() == "":
        raise OrderValidationError(OrderErrorCode.INVALID, "user_id is required")
    customer = db.session.query(Customer).filter_by(user_id=str(user_id)).first()
    if not customer:
        raise OrderValidationError(OrderErrorCode.NOT_FOUND, "Customer not found", {"user_id": str(user_id)})
    return customer


def resolve_delivery_address(customer: Customer, address_id) -> dict:
    """
    Snapshot of the delivery address for an order.

    address_id is a CustomerAddress id belonging to the customer, or the
    "profile-address" sentinel, in which case the profile fields must all be
    filled in.
    """
    if address_id is None or str(address_id).strip() == "":
        raise OrderValidationError(OrderErrorCode.INVALID_ADDRESS, "Delivery address is required")

    if str(address_id) == PROFILE_ADDRESS:
        missing = [name for name in PROFILE_REQUIRED_FIELDS if not getattr(customer, name)]
        if missing:
            raise OrderValidationError(
                OrderErrorCode.INVALID_ADDRESS,
                "Profile address is incomplete. Please add a delivery address.",
                {"missing": missing},
            )
        return {
            "address_id": PROFILE_ADDRESS,
            "name": customer.name,
            "phone": customer.phone,
            "address_line1": customer.address_line1,
            "city": customer.city,
            "state": customer.state,
            "pincode": customer.pincode,
            "country": customer.country,
        }

    try:
        lookup_id = int(address_id)
    except (TypeError, ValueError):
        raise OrderValidationError(
            OrderErrorCode.INVALID_ADDRESS, "Invalid delivery address", {"address_id": address_id}
        ) from None

    address = db.session.get(CustomerAddress, lookup_id)
    if not address or address.customer_id != customer.id:
        raise OrderValidationError(
            OrderErrorCode.INVALID_ADDRESS, "Invalid delivery address", {"address_id": address_id}
        )
    return address.to_snapshot()


def load_cart(customer_id: int) -> list[CartItem]:
    return (
        db.session.query(CartItem)
        .filter_by(customer_id=customer_id)
        .order_by(CartItem.id)
        .all()
    )


def clear_cart(customer_id: int) -> int:
    """Delete the customer's cart rows (caller commits)."""
    return db.session.query(CartItem).filter_by(customer_id=customer_id).delete(synchronize_session=False)


def record_purchase(customer_id: int, order_total, order_date: datetime) -> Customer | None:
    """Bump order count, lifetime spend and last order date. Caller commits."""
    customer = db.session.get(Customer, customer_id)
    if not customer:
        current_app.logger.warning("Analytics skipped: customer %s not found", customer_id)
        return None

    customer.total_orders = (customer.total_orders or 0) + 1
    customer.total_spent = to_decimal(customer.total_spent) + to_decimal(order_total)
    if customer.last_order_date is None or order_date > customer.last_order_date:
        customer.last_order_date = order_date
    db.session.flush()
    return customer
