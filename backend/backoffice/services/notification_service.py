# Overview: Order notifications. Posted to a webhook with httpx when one is
# configured, otherwise written to the application log.

from __future__ import annotations

from dataclasses import asdict, dataclass

import httpx
from flask import current_app

from ..models import CHANNEL_POS, Order
from ..money import money_str


KIND_ORDER_PLACED = "order_placed"
KIND_NEW_ORDER = "new_order"
OPERATORS = "operators"


@dataclass(frozen=True)
class OrderNotification:
    kind: str
    recipient: str
    title: str
    message: str
    order_id: int
    order_number: str
    channel: str
    amount: str
    payment_method: str
    customer_name: str | None = None


def build_buyer_notification(order: Order) -> OrderNotification:
    return OrderNotification(
        kind=KIND_ORDER_PLACED,
        recipient=order.actor_key,
        title="Order placed",
        message=f"Your order {order.order_number} for Rs. {money_str(order.total)} has been placed.",
        order_id=order.id,
        order_number=order.order_number,
        channel=order.channel,
        amount=money_str(order.total),
        payment_method=order.payment_method,
        customer_name=order.customer_name,
    )


def build_operator_notification(order: Order) -> OrderNotification:
    source = "POS" if order.channel == CHANNEL_POS else "Online"
    who = order.customer_name or "walk-in customer"
    return OrderNotification(
        kind=KIND_NEW_ORDER,
        recipient=OPERATORS,
        title=f"New {source} order",
        message=(
            f"{source} order {order.order_number} from {who}: "
            f"Rs. {money_str(order.total)} via {order.payment_method.upper()}"
        ),
        order_id=order.id,
        order_number=order.order_number,
        channel=order.channel,
        amount=money_str(order.total),
        payment_method=order.payment_method,
        customer_name=order.customer_name,
    )


def dispatch(notification: OrderNotification) -> None:
    """
    Deliver one notification. Raises on HTTP failure so the outbox retries it.
    """
    url = current_app.config.get("NOTIFICATION_WEBHOOK_URL")
    if not url:
        current_app.logger.info(
            "Notification %s -> %s: %s", notification.kind, notification.recipient, notification.message,
        )
        return

    timeout = current_app.config.get("NOTIFICATION_TIMEOUT_SECONDS", 5)
    response = httpx.post(url, json=asdict(notification), timeout=timeout)
    response.raise_for_status()
