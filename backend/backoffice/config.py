# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seller state used for GST split when CompanySettings has no state
    SELLER_REGION = os.environ.get("SELLER_REGION", "")

    # Trailing window for duplicate order detection (same actor + payment method)
    DUPLICATE_ORDER_WINDOW_SECONDS = int(os.environ.get("DUPLICATE_ORDER_WINDOW_SECONDS", "30"))

    DEFAULT_VARIANT_LOW_STOCK = int(os.environ.get("DEFAULT_VARIANT_LOW_STOCK", "10"))

    # Side-effect outbox
    OUTBOX_DISPATCH_INLINE = _env_bool("OUTBOX_DISPATCH_INLINE", True)
    OUTBOX_MAX_ATTEMPTS = int(os.environ.get("OUTBOX_MAX_ATTEMPTS", "5"))
    OUTBOX_BACKOFF_SECONDS = float(os.environ.get("OUTBOX_BACKOFF_SECONDS", "2"))

    # Notifications are logged when no webhook is configured
    NOTIFICATION_WEBHOOK_URL = os.environ.get("NOTIFICATION_WEBHOOK_URL") or None
    NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "5"))
