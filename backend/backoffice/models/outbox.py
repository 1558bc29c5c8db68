from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class OutboxTask(db.Model):
    """
    Post-commit side effect, enqueued in the same transaction as its order.

    LIFECYCLE:
    1. pending: waiting for next_attempt_at
    2. done: handler ran and the task was marked in the same commit
    3. dead: gave up after max_attempts (kept for inspection)
    """
    __tablename__ = "outbox_tasks"
    __table_args__ = (
        db.Index("ix_outbox_tasks_status_next_attempt", "status", "next_attempt_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    task_type = db.Column(db.String(64), nullable=False)
    payload = db.Column(db.JSON, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    max_attempts = db.Column(db.Integer, nullable=False, default=5)
    last_error = db.Column(db.Text, nullable=True)
    next_attempt_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_type": self.task_type,
            "payload": self.payload,
            "order_id": self.order_id,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "last_error": self.last_error,
            "next_attempt_at": to_utc_z(self.next_attempt_at),
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }
