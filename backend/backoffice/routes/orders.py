# backend/backoffice/routes/orders.py
"""
Online checkout and order lookup routes.

POST /api/online/orders
  COD -> 201 with the order; razorpay/stripe -> 200 with a prepared checkout
  (requires_payment). A duplicate submission -> 200 with is_duplicate.
  Another submission in flight -> 429.
POST /api/online/orders/confirm
  Gateway confirmation for a prepared checkout.
GET  /api/orders/<order_number>
POST /api/orders/<order_number>/restock
  Return an order's quantities to stock (cancellation / return).
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import BackofficeError
from ..services import order_service, stock_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/online/orders")
def place_online_order_route():
    data = request.get_json(silent=True) or {}
    payment_method = (data.get("payment_method") or order_service.PAYMENT_COD).strip().lower()

    try:
        if payment_method == order_service.PAYMENT_COD:
            result = order_service.place_cod_order(
                user_id=data.get("user_id"),
                delivery_address_id=data.get("delivery_address_id"),
                coupon_code=data.get("coupon_code"),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
            return jsonify(result.to_dict()), 200 if result.is_duplicate else 201

        prepared = order_service.prepare_online_payment(
            user_id=data.get("user_id"),
            delivery_address_id=data.get("delivery_address_id"),
            payment_method=payment_method,
            coupon_code=data.get("coupon_code"),
        )
        return jsonify(prepared.to_dict()), 200

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to place online order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/online/orders/confirm")
def confirm_online_order_route():
    data = request.get_json(silent=True) or {}
    try:
        result = order_service.confirm_online_payment(
            order_number=data.get("order_number"),
            payment_id=data.get("payment_id"),
            user_id=data.get("user_id"),
        )
        return jsonify(result.to_dict()), 200 if result.is_duplicate else 201

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to confirm online payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orders/<order_number>")
def get_order_route(order_number: str):
    order = order_service.get_order(order_number)
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/orders/<order_number>/restock")
def restock_order_route(order_number: str):
    data = request.get_json(silent=True) or {}
    order = order_service.get_order(order_number)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    try:
        results = stock_service.reverse_order_stock(order, actor=data.get("actor") or "system")
        return jsonify({"results": [r.to_dict() for r in results]}), 200

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to restock order %s", order_number)
        return jsonify({"error": "Internal server error"}), 500
