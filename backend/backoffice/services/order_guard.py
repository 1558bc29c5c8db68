# Overview: Duplicate-order protection. An in-process in-flight set per actor, a
# trailing-window lookup of committed orders, and durable idempotency keys.

from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta

from flask import current_app

from ..errors import OrderInFlightError
from ..extensions import db
from ..models import IdempotencyKey, Order
from ..time_utils import utcnow


class OrderGuard:
    """
    Keyed mutex registry for order submission.

    try_acquire never blocks: a second submission for a key that is already in
    flight gets False straight away. Single process only; the trailing-window
    check and idempotency keys cover everything else.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def is_held(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @contextmanager
    def hold(self, key: str):
        if not self.try_acquire(key):
            raise OrderInFlightError(key)
        try:
            yield
        finally:
            self.release(key)


order_guard = OrderGuard()


def guard_key(channel: str, actor_key: str) -> str:
    return f"{channel}:{actor_key}"


def basket_fingerprint(lines) -> str:
    """
    Stable hash of a basket: (product_id, variant_index, quantity, discount) per
    line, order-independent.
    """
    parts = sorted(
        f"{product_id}|{'' if variant_index is None else variant_index}|{quantity}|{discount or 0}"
        for product_id, variant_index, quantity, discount in lines
    )
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()


def find_recent_duplicate(
    *,
    actor_key: str,
    channel: str,
    payment_method: str,
    fingerprint: str | None = None,
    window_seconds: int | None = None,
    now: datetime | None = None,
) -> Order | None:
    """
    Most recent committed order from the same actor and payment method inside
    the trailing window (and, when given, with the same basket fingerprint).
    """
    if window_seconds is None:
        window_seconds = current_app.config.get("DUPLICATE_ORDER_WINDOW_SECONDS", 30)
    if not window_seconds or window_seconds <= 0:
        return None

    cutoff = (now or utcnow()) - timedelta(seconds=window_seconds)
    query = db.session.query(Order).filter(
        Order.actor_key == actor_key,
        Order.channel == channel,
        Order.payment_method == payment_method,
        Order.created_at >= cutoff,
    )
    if fingerprint:
        query = query.filter(Order.basket_fingerprint == fingerprint)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).first()


def find_by_idempotency_key(key: str | None, *, actor_key: str, channel: str) -> Order | None:
    """Order an actor already placed on this channel under the same key."""
    if not key:
        return None
    record = (
        db.session.query(IdempotencyKey)
        .filter_by(key=key, actor_key=actor_key, channel=channel)
        .first()
    )
    if not record:
        return None
    return db.session.get(Order, record.order_id)
