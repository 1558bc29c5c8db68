# Overview: Durable queue for post-commit side effects (mirror fan-out, ledger,
# customer analytics, notifications). Tasks are enqueued in the order's
# transaction and dispatched inline after commit or by `flask outbox drain`.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import CHANNEL_POS, Order, OutboxTask
from ..time_utils import utcnow
from . import customer_service, ledger_service, notification_service, stock_service
from .concurrency import begin_write


TASK_STOCK_FAN_OUT = "stock.fan_out"
TASK_LEDGER_ENTRY = "ledger.record_order"
TASK_CUSTOMER_ANALYTICS = "customer.record_purchase"
TASK_NOTIFY_BUYER = "notify.buyer"
TASK_NOTIFY_OPERATORS = "notify.operators"

STATUS_PENDING = "pending"
STATUS_DONE = "done"
STATUS_DEAD = "dead"


class MirrorSyncError(Exception):
    """Some mirrors did not take the new stock level; the task will be retried."""
    pass


@dataclass
class DispatchSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    dead: int = 0

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dead": self.dead,
        }


def enqueue(task_type: str, payload: dict, *, order_id: int | None = None) -> OutboxTask:
    """Add a task to the current transaction. Caller commits."""
    if task_type not in _HANDLERS:
        raise ValueError(f"Unknown outbox task type: {task_type}")
    task = OutboxTask(
        task_type=task_type,
        payload=payload,
        order_id=order_id,
        status=STATUS_PENDING,
        attempts=0,
        max_attempts=current_app.config.get("OUTBOX_MAX_ATTEMPTS", 5),
        next_attempt_at=utcnow(),
    )
    db.session.add(task)
    return task


def dispatch_pending(*, order_id: int | None = None, limit: int = 100, now: datetime | None = None) -> DispatchSummary:
    """Run due pending tasks (optionally only one order's) oldest first."""
    now = now or utcnow()
    query = db.session.query(OutboxTask.id).filter(
        OutboxTask.status == STATUS_PENDING,
        OutboxTask.next_attempt_at <= now,
    )
    if order_id is not None:
        query = query.filter(OutboxTask.order_id == order_id)
    task_ids = [row.id for row in query.order_by(OutboxTask.id).limit(limit)]
    db.session.commit()

    summary = DispatchSummary()
    for task_id in task_ids:
        outcome = run_task(task_id)
        if outcome is None:
            continue
        summary.attempted += 1
        if outcome == STATUS_DONE:
            summary.succeeded += 1
        else:
            summary.failed += 1
            if outcome == STATUS_DEAD:
                summary.dead += 1
    return summary


def run_task(task_id: int) -> str | None:
    """
    Run one task. The handler's writes and the task's `done` mark commit
    together; on failure they are rolled back and the attempt is recorded with
    exponential backoff. Returns the resulting status, or None if the task was
    no longer pending.
    """
    task = db.session.get(OutboxTask, task_id)
    if task is None or task.status != STATUS_PENDING:
        return None
    task_type, payload = task.task_type, dict(task.payload or {})

    try:
        begin_write()
        task = db.session.query(OutboxTask).filter_by(id=task_id).populate_existing().first()
        if task.status != STATUS_PENDING:
            db.session.rollback()
            return None
        _HANDLERS[task_type](payload)
        task.attempts += 1
        task.status = STATUS_DONE
        task.completed_at = utcnow()
        task.last_error = None
        db.session.commit()
        return STATUS_DONE
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Outbox task %s (%s) failed", task_id, task_type)
        return _record_failure(task_id, exc)


def _record_failure(task_id: int, exc: Exception) -> str:
    task = db.session.get(OutboxTask, task_id)
    task.attempts += 1
    task.last_error = f"{type(exc).__name__}: {exc}"[:2000]
    if task.attempts >= task.max_attempts:
        task.status = STATUS_DEAD
        current_app.logger.error(
            "Outbox task %s (%s) gave up after %s attempts", task.id, task.task_type, task.attempts,
        )
    else:
        base = current_app.config.get("OUTBOX_BACKOFF_SECONDS", 2)
        task.next_attempt_at = utcnow() + timedelta(seconds=base * (2 ** (task.attempts - 1)))
    status = task.status
    db.session.commit()
    return status


def enqueue_order_side_effects(order: Order, item_ids) -> list[OutboxTask]:
    """Side effects for a freshly committed order, in dispatch order."""
    tasks = [
        enqueue(TASK_STOCK_FAN_OUT, {"item_id": item_id}, order_id=order.id)
        for item_id in sorted(set(item_ids))
    ]
    tasks.append(enqueue(TASK_LEDGER_ENTRY, {"order_id": order.id}, order_id=order.id))
    if order.customer_id:
        tasks.append(enqueue(TASK_CUSTOMER_ANALYTICS, {"order_id": order.id}, order_id=order.id))
    if order.customer_id and order.channel != CHANNEL_POS:
        tasks.append(enqueue(TASK_NOTIFY_BUYER, {"order_id": order.id}, order_id=order.id))
    tasks.append(enqueue(TASK_NOTIFY_OPERATORS, {"order_id": order.id}, order_id=order.id))
    return tasks


def _load_order(payload: dict) -> Order:
    order = db.session.get(Order, payload["order_id"])
    if order is None:
        raise LookupError(f"Order {payload['order_id']} not found")
    return order


def _handle_fan_out(payload: dict) -> None:
    results = stock_service.fan_out(payload["item_id"])
    failures = [r for r in results if not r.ok]
    if failures:
        raise MirrorSyncError(
            f"{len(failures)} mirror(s) failed for item {payload['item_id']}: "
            + "; ".join(f"{r.mirror_type} {r.mirror_id}: {r.error}" for r in failures)
        )


def _handle_ledger_entry(payload: dict) -> None:
    ledger_service.record_order_transaction(_load_order(payload))


def _handle_customer_analytics(payload: dict) -> None:
    order = _load_order(payload)
    customer_service.record_purchase(order.customer_id, order.total, order.created_at)


def _handle_notify_buyer(payload: dict) -> None:
    notification_service.dispatch(notification_service.build_buyer_notification(_load_order(payload)))


def _handle_notify_operators(payload: dict) -> None:
    notification_service.dispatch(notification_service.build_operator_notification(_load_order(payload)))


_HANDLERS = {
    TASK_STOCK_FAN_OUT: _handle_fan_out,
    TASK_LEDGER_ENTRY: _handle_ledger_entry,
    TASK_CUSTOMER_ANALYTICS: _handle_customer_analytics,
    TASK_NOTIFY_BUYER: _handle_notify_buyer,
    TASK_NOTIFY_OPERATORS: _handle_notify_operators,
}
