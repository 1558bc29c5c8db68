# Overview: Read-only inventory reports built from the StockAdjustment ledger and
# the mirror tables.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, OnlineProductVariant, PosProduct, StockAdjustment
from .stock_service import stock_status_for


def list_adjustments(
    *,
    item_id: int | None = None,
    method: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[StockAdjustment], int]:
    query = db.session.query(StockAdjustment)
    if item_id:
        query = query.filter(StockAdjustment.item_id == item_id)
    if method:
        query = query.filter(StockAdjustment.method == method)
    if from_date:
        query = query.filter(StockAdjustment.created_at >= from_date)
    if to_date:
        query = query.filter(StockAdjustment.created_at < to_date)

    total = query.count()

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    rows = (
        query.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def movement_report(start: datetime, end: datetime, *, item_id: int | None = None) -> dict:
    """
    Stock movement per item for [start, end).

    opening = previous_quantity of the first adjustment in the range,
    closing = new_quantity of the last. Increases and decreases are broken
    down by method.
    """
    query = db.session.query(StockAdjustment).filter(
        StockAdjustment.created_at >= start,
        StockAdjustment.created_at < end,
    )
    if item_id:
        query = query.filter(StockAdjustment.item_id == item_id)
    rows = query.order_by(StockAdjustment.created_at, StockAdjustment.id).all()

    items: dict[int, dict] = {}
    for adj in rows:
        entry = items.get(adj.item_id)
        if entry is None:
            entry = items[adj.item_id] = {
                "item_id": adj.item_id,
                "item_code": adj.item_code,
                "item_name": adj.item_name,
                "category": adj.category,
                "warehouse_name": adj.warehouse_name,
                "opening_quantity": adj.previous_quantity,
                "closing_quantity": adj.new_quantity,
                "increases": {},
                "decreases": {},
                "total_in": 0,
                "total_out": 0,
                "movements": 0,
            }
        entry["closing_quantity"] = adj.new_quantity
        entry["movements"] += 1
        if adj.quantity_delta > 0:
            entry["increases"][adj.method] = entry["increases"].get(adj.method, 0) + adj.quantity_delta
            entry["total_in"] += adj.quantity_delta
        elif adj.quantity_delta < 0:
            entry["decreases"][adj.method] = entry["decreases"].get(adj.method, 0) - adj.quantity_delta
            entry["total_out"] -= adj.quantity_delta

    report_items = sorted(items.values(), key=lambda e: (e["item_name"] or "", e["item_id"]))
    for entry in report_items:
        entry["net_change"] = entry["total_in"] - entry["total_out"]

    return {
        "start": start,
        "end": end,
        "items": report_items,
        "summary": {
            "items": len(report_items),
            "movements": len(rows),
            "total_in": sum(e["total_in"] for e in report_items),
            "total_out": sum(e["total_out"] for e in report_items),
        },
    }


def discrepancy_report() -> list[dict]:
    """
    Items whose mirrors or audit trail disagree with the canonical quantity.

    Checks: POS mirror quantity/status, online variant quantity and status
    (against the variant's own threshold), and the last StockAdjustment's
    new_quantity.
    """
    default_threshold = current_app.config.get("DEFAULT_VARIANT_LOW_STOCK", 10)
    findings = []

    for item in db.session.query(InventoryItem).order_by(InventoryItem.id):
        issues = []

        for mirror in db.session.query(PosProduct).filter_by(item_id=item.id).order_by(PosProduct.id):
            if mirror.quantity != item.quantity or mirror.status != item.status:
                issues.append({
                    "type": "pos_mirror",
                    "mirror_id": mirror.id,
                    "expected": {"quantity": item.quantity, "status": item.status},
                    "actual": {"quantity": mirror.quantity, "status": mirror.status},
                })

        variants = (
            db.session.query(OnlineProductVariant)
            .filter_by(inventory_item_id=item.id)
            .order_by(OnlineProductVariant.id)
        )
        for variant in variants:
            threshold = variant.low_stock_alert if variant.low_stock_alert is not None else default_threshold
            expected_status = stock_status_for(item.quantity, threshold)
            if variant.stock_quantity != item.quantity or variant.stock_status != expected_status:
                issues.append({
                    "type": "online_variant",
                    "mirror_id": variant.id,
                    "expected": {"quantity": item.quantity, "status": expected_status},
                    "actual": {"quantity": variant.stock_quantity, "status": variant.stock_status},
                })

        last = (
            db.session.query(StockAdjustment)
            .filter_by(item_id=item.id)
            .order_by(StockAdjustment.id.desc())
            .first()
        )
        if last is not None and last.new_quantity != item.quantity:
            issues.append({
                "type": "audit_trail",
                "adjustment_id": last.id,
                "expected": {"quantity": item.quantity},
                "actual": {"quantity": last.new_quantity},
            })

        if issues:
            findings.append({
                "item_id": item.id,
                "item_code": item.item_code,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "issues": issues,
            })

    return findings
