# backend/backoffice/routes/invoice_settings.py
"""Invoice numbering settings. GET creates the default row on first read."""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvoiceSettingsError
from ..services import invoice_service


invoice_settings_bp = Blueprint("invoice_settings", __name__, url_prefix="/api/finance")


@invoice_settings_bp.get("/invoice-settings")
def get_invoice_settings_route():
    settings = invoice_service.get_invoice_settings()
    period = invoice_service.get_financial_period()
    return jsonify({"settings": settings.to_dict(), "current_period": period.to_dict()}), 200


@invoice_settings_bp.put("/invoice-settings")
def update_invoice_settings_route():
    data = request.get_json(silent=True) or {}
    try:
        settings = invoice_service.update_invoice_settings(data)
        return jsonify({"settings": settings.to_dict()}), 200

    except InvoiceSettingsError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update invoice settings")
        return jsonify({"error": "Internal server error"}), 500
