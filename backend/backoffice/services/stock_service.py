# Overview: Stock reconciliation. Applies signed deltas to InventoryItem, writes the
# StockAdjustment audit row and fans the new level out to POS/online mirrors.

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from flask import current_app

from ..errors import StockError, StockItemNotFoundError
from ..extensions import db
from ..models import (
    InventoryItem,
    OnlineProductVariant,
    PosProduct,
    StockAdjustment,
    STOCK_IN,
    STOCK_LOW,
    STOCK_OUT,
)
from ..time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry


METHOD_ADJUSTMENT = "adjustment"
METHOD_PURCHASE_RECEIPT = "purchase_receipt"
METHOD_SALES_ORDER = "sales_order"
METHOD_SALES_RETURN = "sales_return"

MANUAL_REASONS = ("damage", "loss", "return", "found", "correction", "expired", "other")

MIRROR_POS = "pos_product"
MIRROR_ONLINE_VARIANT = "online_variant"


@dataclass(frozen=True)
class AdjustmentContext:
    """Who/why for a stock change; copied onto the StockAdjustment row."""
    method: str
    actor: str = "system"
    reason: str | None = None
    reason_details: str | None = None
    notes: str | None = None
    reference: str | None = None
    order_id: int | None = None
    order_number: str | None = None


@dataclass(frozen=True)
class MirrorSyncResult:
    mirror_type: str
    mirror_id: int
    quantity: int | None
    status: str | None
    ok: bool
    error: str | None = None


@dataclass
class ReconciliationResult:
    item_id: int
    requested_delta: int
    applied_delta: int
    previous_quantity: int
    new_quantity: int
    status: str
    clamped: bool
    adjustment_id: int | None = None
    mirrors: list = field(default_factory=list)

    @property
    def mirror_failures(self) -> list:
        return [m for m in self.mirrors if not m.ok]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["mirror_failures"] = len(self.mirror_failures)
        return data


def stock_status_for(quantity: int, threshold: int | None) -> str:
    """0 -> out_of_stock, <= threshold -> low_stock, otherwise in_stock."""
    if quantity <= 0:
        return STOCK_OUT
    if threshold is not None and quantity <= threshold:
        return STOCK_LOW
    return STOCK_IN


def load_item_for_update(item_id: int) -> InventoryItem:
    item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
    if not item:
        raise StockItemNotFoundError("Inventory item not found", {"item_id": item_id})
    return item


def write_delta_locked(item: InventoryItem, signed_quantity: int, context: AdjustmentContext) -> ReconciliationResult:
    """
    Record-side half of a stock change. Caller holds the write lock and commits.

    new = max(0, current + delta). When the floor kicks in the row is flagged
    `clamped` and quantity_delta holds the change actually applied.
    """
    previous = item.quantity or 0
    new_quantity = max(0, previous + signed_quantity)
    applied = new_quantity - previous
    clamped = applied != signed_quantity

    if clamped:
        current_app.logger.warning(
            "Stock clamp on item %s (%s): requested %s from %s, applied %s",
            item.id, item.item_code, signed_quantity, previous, applied,
        )

    item.quantity = new_quantity
    item.status = stock_status_for(new_quantity, item.low_stock_threshold)

    if applied > 0:
        adjustment_type = "increase"
    elif applied < 0:
        adjustment_type = "decrease"
    else:
        adjustment_type = "increase" if signed_quantity > 0 else "decrease"

    adjustment = StockAdjustment(
        item_id=item.id,
        item_code=item.item_code,
        item_name=item.item_name,
        category=item.category,
        warehouse_name=item.warehouse_name,
        method=context.method,
        adjustment_type=adjustment_type,
        requested_delta=signed_quantity,
        quantity_delta=applied,
        previous_quantity=previous,
        new_quantity=new_quantity,
        clamped=clamped,
        reason=context.reason,
        reason_details=context.reason_details,
        notes=context.notes,
        reference=context.reference,
        order_id=context.order_id,
        order_number=context.order_number,
        adjusted_by=context.actor or "system",
        created_at=utcnow(),
    )
    db.session.add(adjustment)
    db.session.flush()

    return ReconciliationResult(
        item_id=item.id,
        requested_delta=signed_quantity,
        applied_delta=applied,
        previous_quantity=previous,
        new_quantity=new_quantity,
        status=item.status,
        clamped=clamped,
        adjustment_id=adjustment.id,
    )


def apply_delta(
    item_id: int,
    signed_quantity: int,
    context: AdjustmentContext,
    *,
    reject_overdraft: bool = False,
    fan_out_mirrors: bool = True,
) -> ReconciliationResult:
    """
    Apply a signed delta to an item, commit, then propagate to mirrors.

    With reject_overdraft the change is refused (StockError) instead of being
    clamped when it would take the quantity below zero.
    """
    if not isinstance(signed_quantity, int) or isinstance(signed_quantity, bool):
        raise StockError("Quantity delta must be an integer", {"delta": signed_quantity})

    def _op() -> ReconciliationResult:
        begin_write()
        item = load_item_for_update(item_id)
        if reject_overdraft and item.quantity + signed_quantity < 0:
            raise StockError(
                "Insufficient stock for this adjustment",
                {"item_id": item_id, "current_quantity": item.quantity, "requested_delta": signed_quantity},
            )
        result = write_delta_locked(item, signed_quantity, context)
        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Stock %s on item %s: %s -> %s (%s)",
        context.method, item_id, result.previous_quantity, result.new_quantity, result.status,
    )
    if fan_out_mirrors:
        result.mirrors = fan_out(item_id)
    return result


def _sync_pos_mirror(mirror_id: int, quantity: int, status: str) -> tuple[int, str]:
    mirror = db.session.get(PosProduct, mirror_id)
    mirror.quantity = quantity
    mirror.status = status
    mirror.last_synced_at = utcnow()
    return quantity, status


def _sync_variant_mirror(mirror_id: int, quantity: int) -> tuple[int, str]:
    variant = db.session.get(OnlineProductVariant, mirror_id)
    threshold = variant.low_stock_alert
    if threshold is None:
        threshold = current_app.config.get("DEFAULT_VARIANT_LOW_STOCK", 10)
    status = stock_status_for(quantity, threshold)
    variant.stock_quantity = quantity
    variant.stock_status = status
    variant.last_synced_at = utcnow()
    return quantity, status


def _sync_one(mirror_type: str, mirror_id: int, apply) -> MirrorSyncResult:
    """Write one mirror in its own commit; a failure only affects this mirror."""
    try:
        quantity, status = apply()
        db.session.commit()
        return MirrorSyncResult(mirror_type, mirror_id, quantity, status, ok=True)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Mirror sync failed for %s %s", mirror_type, mirror_id)
        return MirrorSyncResult(mirror_type, mirror_id, None, None, ok=False, error=str(exc))


def fan_out(item_id: int) -> list[MirrorSyncResult]:
    """
    Copy the committed quantity of an item to every mirror that references it.

    POS mirrors take quantity and status verbatim. Online variants take the
    quantity and derive status from their own low_stock_alert. Re-running is
    harmless: it always copies the current committed value.
    """
    item = db.session.query(InventoryItem).filter_by(id=item_id).populate_existing().first()
    if not item:
        raise StockItemNotFoundError("Inventory item not found", {"item_id": item_id})
    quantity, status = item.quantity, item.status

    pos_ids = [row.id for row in db.session.query(PosProduct.id).filter_by(item_id=item_id).order_by(PosProduct.id)]
    variant_ids = [
        row.id
        for row in db.session.query(OnlineProductVariant.id)
        .filter_by(inventory_item_id=item_id)
        .order_by(OnlineProductVariant.id)
    ]
    db.session.commit()

    results = []
    for mirror_id in pos_ids:
        results.append(_sync_one(
            MIRROR_POS, mirror_id,
            lambda mirror_id=mirror_id: _sync_pos_mirror(mirror_id, quantity, status),
        ))
    for mirror_id in variant_ids:
        results.append(_sync_one(
            MIRROR_ONLINE_VARIANT, mirror_id,
            lambda mirror_id=mirror_id: _sync_variant_mirror(mirror_id, quantity),
        ))

    failures = [r for r in results if not r.ok]
    if failures:
        current_app.logger.warning(
            "Fan-out for item %s: %s of %s mirrors failed", item_id, len(failures), len(results),
        )
    return results


def receive_stock(
    item_id: int,
    quantity: int,
    *,
    actor: str,
    reference: str | None = None,
    notes: str | None = None,
) -> ReconciliationResult:
    """Goods received against a purchase; always an increase."""
    quantity = _positive_quantity(quantity)
    context = AdjustmentContext(
        method=METHOD_PURCHASE_RECEIPT,
        actor=actor,
        reference=reference,
        notes=notes,
    )
    return apply_delta(item_id, quantity, context)


def manual_adjust(
    item_id: int,
    *,
    adjustment_type: str,
    quantity: int,
    reason: str,
    actor: str,
    reason_details: str | None = None,
    notes: str | None = None,
) -> ReconciliationResult:
    """
    Operator stock correction.

    A decrease larger than the current quantity is rejected rather than
    clamped: the operator is told the current level instead.
    """
    if adjustment_type not in ("increase", "decrease"):
        raise StockError("adjustment_type must be 'increase' or 'decrease'", {"adjustment_type": adjustment_type})
    if reason not in MANUAL_REASONS:
        raise StockError("Invalid adjustment reason", {"reason": reason, "allowed": list(MANUAL_REASONS)})
    quantity = _positive_quantity(quantity)

    signed = quantity if adjustment_type == "increase" else -quantity
    context = AdjustmentContext(
        method=METHOD_ADJUSTMENT,
        actor=actor,
        reason=reason,
        reason_details=reason_details,
        notes=notes,
    )
    return apply_delta(item_id, signed, context, reject_overdraft=True)


def reverse_order_stock(order, *, actor: str) -> list[ReconciliationResult]:
    """
    Put an order's quantities back on the shelf (cancellation / return).

    Uses the same delta path with a positive quantity and method
    sales_return. An order can only be restocked once.
    """
    already = (
        db.session.query(StockAdjustment.id)
        .filter_by(order_id=order.id, method=METHOD_SALES_RETURN)
        .first()
    )
    if already:
        raise StockError("Order stock has already been restored", {"order_number": order.order_number})

    per_item: dict[int, int] = {}
    for line in order.lines:
        per_item[line.inventory_item_id] = per_item.get(line.inventory_item_id, 0) + line.quantity

    results = []
    for item_id, quantity in sorted(per_item.items()):
        context = AdjustmentContext(
            method=METHOD_SALES_RETURN,
            actor=actor,
            order_id=order.id,
            order_number=order.invoice_number or order.order_number,
            notes=f"Restock for order {order.order_number}",
        )
        results.append(apply_delta(item_id, quantity, context))
    return results


def resync_all_mirrors(item_ids: list[int] | None = None) -> dict:
    """Repair pass: re-run fan-out for every item that has mirrors."""
    if item_ids is None:
        pos_items = {row.item_id for row in db.session.query(PosProduct.item_id).filter(PosProduct.item_id.isnot(None))}
        variant_items = {
            row.inventory_item_id
            for row in db.session.query(OnlineProductVariant.inventory_item_id)
            .filter(OnlineProductVariant.inventory_item_id.isnot(None))
        }
        item_ids = sorted(pos_items | variant_items)

    summary = {"items": 0, "mirrors_updated": 0, "failures": []}
    for item_id in item_ids:
        results = fan_out(item_id)
        summary["items"] += 1
        for result in results:
            if result.ok:
                summary["mirrors_updated"] += 1
            else:
                summary["failures"].append(asdict(result))
    current_app.logger.info(
        "Mirror resync: %s items, %s mirrors updated, %s failures",
        summary["items"], summary["mirrors_updated"], len(summary["failures"]),
    )
    return summary


def _positive_quantity(quantity) -> int:
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise StockError("Quantity must be a positive integer", {"quantity": quantity}) from None
    if value <= 0 or (isinstance(quantity, float) and not quantity.is_integer()):
        raise StockError("Quantity must be a positive integer", {"quantity": quantity})
    return value
