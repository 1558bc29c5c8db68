# Overview: Domain exceptions shared by services and routes.

from __future__ import annotations

from enum import Enum


class OrderErrorCode(str, Enum):
    EMPTY_CART = "empty_cart"
    INVALID_ADDRESS = "invalid_address"
    INSUFFICIENT_STOCK = "insufficient_stock"
    COUPON_INVALID = "coupon_invalid"
    COUPON_EXPIRED = "coupon_expired"
    COUPON_BELOW_MINIMUM = "coupon_below_minimum"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    IN_FLIGHT = "in_flight"
    COMMIT_FAILED = "commit_failed"


class BackofficeError(Exception):
    """Base for errors a route can hand back to the caller as JSON."""

    http_status = 400
    default_code = "invalid"

    def __init__(self, message: str, details: dict | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class OrderError(BackofficeError):
    def __init__(self, code: OrderErrorCode, message: str, details: dict | None = None):
        super().__init__(message, details, code=code.value)
        self.error_code = code


class OrderValidationError(OrderError):
    """Basket, address, coupon or stock check failed. Nothing was written."""


class OrderInFlightError(OrderError):
    """Another submission for the same actor is being processed."""

    http_status = 429

    def __init__(self, actor_key: str):
        super().__init__(
            OrderErrorCode.IN_FLIGHT,
            "Your order is being processed. Please retry in a moment.",
            {"actor": actor_key},
        )


class OrderCommitError(OrderError):
    """The order transaction was rolled back; the client may retry."""

    http_status = 503

    def __init__(self, message: str = "Could not place order right now. Please retry.", details: dict | None = None):
        super().__init__(OrderErrorCode.COMMIT_FAILED, message, details)


class StockError(BackofficeError):
    default_code = "stock_error"


class InvoiceSettingsError(BackofficeError):
    default_code = "invalid_invoice_settings"


class StockItemNotFoundError(StockError):
    http_status = 404
    default_code = "not_found"
