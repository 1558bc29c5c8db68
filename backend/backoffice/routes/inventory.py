# backend/backoffice/routes/inventory.py
"""
Inventory adjustment, receipt, mirror repair and report routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Report ranges are half-open: start <= created_at < end.
"""
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from ..errors import BackofficeError
from ..services import inventory_report_service, stock_service
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _actor(data: dict) -> str:
    return str(data.get("adjusted_by") or data.get("actor") or "system")


@inventory_bp.post("/items/<int:item_id>/adjustments")
def adjust_item_route(item_id: int):
    """
    Manual adjustment.

    Body: adjustment_type (increase|decrease), quantity, reason,
    reason_details?, notes?, adjusted_by?
    """
    data = request.get_json(silent=True) or {}
    try:
        result = stock_service.manual_adjust(
            item_id,
            adjustment_type=data.get("adjustment_type"),
            quantity=data.get("quantity"),
            reason=data.get("reason"),
            actor=_actor(data),
            reason_details=data.get("reason_details"),
            notes=data.get("notes"),
        )
        return jsonify({"result": result.to_dict()}), 201

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust inventory item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/items/<int:item_id>/receipts")
def receive_item_route(item_id: int):
    """Purchase receipt. Body: quantity, reference?, notes?, adjusted_by?"""
    data = request.get_json(silent=True) or {}
    try:
        result = stock_service.receive_stock(
            item_id,
            data.get("quantity"),
            actor=_actor(data),
            reference=data.get("reference"),
            notes=data.get("notes"),
        )
        return jsonify({"result": result.to_dict()}), 201

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive stock for item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/items/<int:item_id>/resync")
def resync_item_route(item_id: int):
    try:
        results = stock_service.fan_out(item_id)
        return jsonify({
            "item_id": item_id,
            "mirrors": [
                {
                    "mirror_type": r.mirror_type,
                    "mirror_id": r.mirror_id,
                    "quantity": r.quantity,
                    "status": r.status,
                    "ok": r.ok,
                    "error": r.error,
                }
                for r in results
            ],
        }), 200

    except BackofficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resync mirrors for item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/adjustments")
def list_adjustments_route():
    try:
        from_date = parse_iso_datetime(request.args.get("from"))
        to_date = parse_iso_datetime(request.args.get("to"))
        item_id = request.args.get("item_id", type=int)
        limit = request.args.get("limit", default=100, type=int)
        offset = request.args.get("offset", default=0, type=int)
    except ValueError:
        return jsonify({"error": "Invalid query parameters"}), 400

    rows, total = inventory_report_service.list_adjustments(
        item_id=item_id,
        method=request.args.get("method"),
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "adjustments": [row.to_dict() for row in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@inventory_bp.get("/reports/movement")
def movement_report_route():
    """
    Query: date=YYYY-MM-DD (one day, default today) or from/to datetimes;
    item_id optional.
    """
    try:
        if request.args.get("from") or request.args.get("to"):
            start = parse_iso_datetime(request.args.get("from"))
            end = parse_iso_datetime(request.args.get("to")) or utcnow()
            if start is None:
                return jsonify({"error": "from is required when to is given"}), 400
        else:
            day = request.args.get("date")
            start = datetime.fromisoformat(day) if day else utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
            end = start + timedelta(days=1)
        item_id = request.args.get("item_id", type=int)
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400

    if end <= start:
        return jsonify({"error": "to must be after from"}), 400

    report = inventory_report_service.movement_report(start, end, item_id=item_id)
    report["start"] = to_utc_z(report["start"])
    report["end"] = to_utc_z(report["end"])
    return jsonify(report), 200


@inventory_bp.get("/reports/discrepancies")
def discrepancy_report_route():
    findings = inventory_report_service.discrepancy_report()
    return jsonify({"items": findings, "count": len(findings)}), 200
