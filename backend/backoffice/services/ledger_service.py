# Overview: Financial ledger entries for committed orders.

from __future__ import annotations

from ..extensions import db
from ..models import CHANNEL_POS, LedgerEntry, Order
from ..money import quantize_money, to_decimal
from .document_service import allocate_document_number


def record_order_transaction(order: Order) -> LedgerEntry:
    """
    Book a sale for an order. Caller commits.

    Idempotent per order: a second call returns the existing entry, so the
    outbox can retry safely.
    """
    existing = db.session.query(LedgerEntry).filter_by(order_id=order.id).first()
    if existing:
        return existing

    total = to_decimal(order.total)
    discount = to_decimal(order.discount) + to_decimal(order.coupon_discount)
    tax = to_decimal(order.total_tax)
    shipping = to_decimal(order.shipping_charge)
    is_pos = order.channel == CHANNEL_POS

    entry = LedgerEntry(
        transaction_id=allocate_document_number(document_type="LEDGER_TXN", prefix="TXN"),
        transaction_type="sale",
        transaction_date=order.created_at,
        order_id=order.id,
        reference_type="pos_order" if is_pos else "online_order",
        reference_number=order.order_number,
        invoice_number=order.invoice_number,
        amount=quantize_money(total),
        tax_amount=quantize_money(tax),
        discount_amount=quantize_money(discount),
        shipping_amount=quantize_money(shipping),
        net_amount=quantize_money(total - tax),
        revenue_amount=quantize_money(total - tax - shipping),
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        payment_reference=order.payment_reference,
        customer_id=order.customer_id,
        customer_name=order.customer_name,
        financial_year=order.financial_year,
        accounting_period=order.accounting_period,
        description=f"{'POS' if is_pos else 'Online'} sale {order.order_number}",
        source=order.channel,
        created_by=order.created_by or order.actor_key,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
