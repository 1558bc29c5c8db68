# backend/backoffice/routes/pos_orders.py
"""POS order capture. Accepts an optional Idempotency-Key header."""

from flask import Blueprint, current_app, jsonify, request

from ..errors import BackofficeError
from ..services import order_service


pos_orders_bp = Blueprint("pos_orders", __name__, url_prefix="/api/pos")


@pos_orders_bp.post("/orders")
def create_pos_order_route():
    """
    Body:
      created_by        cashier id (required)
      items             [{product_id, quantity, discount_percent?}]
      payment_method    cash | card | upi
      customer          {id?, name?, email?, phone?} (optional)
      discount          order-level discount amount (optional)
      amount_received   cash tendered (optional)
    """
    data = request.get_json(silent=True) or {}
    try:
        result = order_service.place_pos_order(
            cashier_id=data.get("created_by"),
            items=data.get("items") or [],
            payment_method=data.get("payment_method"),
            customer=data.get("customer"),
            discount=data.get("discount", 0),
            amount_received=data.get("amount_received"),
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        return jsonify(result.to_dict()), 200 if result.is_duplicate else 201

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create POS order")
        return jsonify({"error": "Internal server error"}), 500
