from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


DEFAULT_INVOICE_FORMAT = "{PREFIX}-{FY}-{SEQ}"


class InvoiceSettings(db.Model):
    """
    Invoice numbering template and counter.

    COUNTER: current_sequence_no is the NEXT number to hand out. It only moves
    forward: invoice_service increments it with UPDATE ... SET n = n + 1 inside
    the order transaction, and settings updates may not lower it.
    """
    __tablename__ = "invoice_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_prefix = db.Column(db.String(16), nullable=False, default="INV")
    sequence_length = db.Column(db.Integer, nullable=False, default=4)
    invoice_format = db.Column(db.String(64), nullable=False, default=DEFAULT_INVOICE_FORMAT)
    current_sequence_no = db.Column(db.Integer, nullable=False, default=1)

    auto_financial_year = db.Column(db.Boolean, nullable=False, default=True)
    financial_year_start_month = db.Column(db.Integer, nullable=False, default=4)
    manual_financial_year = db.Column(db.String(16), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_prefix": self.invoice_prefix,
            "sequence_length": self.sequence_length,
            "invoice_format": self.invoice_format,
            "current_sequence_no": self.current_sequence_no,
            "auto_financial_year": self.auto_financial_year,
            "financial_year_start_month": self.financial_year_start_month,
            "manual_financial_year": self.manual_financial_year,
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }


class DocumentSequence(db.Model):
    """Per-type counters for order and transaction numbers."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class LedgerEntry(db.Model):
    """
    Financial transaction derived from a committed order.

    Written by the outbox after commit; order_id is unique so a retried task
    can't book the same sale twice.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_ledger_entries_transaction_id"),
        db.UniqueConstraint("order_id", name="uq_ledger_entries_order_id"),
        db.Index("ix_ledger_entries_period", "financial_year", "accounting_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False, default="sale")
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    reference_type = db.Column(db.String(32), nullable=False)  # pos_order | online_order
    reference_number = db.Column(db.String(64), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False)
    revenue_amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False)
    payment_reference = db.Column(db.String(128), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)

    financial_year = db.Column(db.String(16), nullable=True)
    accounting_period = db.Column(db.String(7), nullable=True)

    description = db.Column(db.String(255), nullable=True)
    source = db.Column(db.String(16), nullable=False)  # pos | online
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transaction_type": self.transaction_type,
            "transaction_date": to_utc_z(self.transaction_date),
            "order_id": self.order_id,
            "reference_type": self.reference_type,
            "reference_number": self.reference_number,
            "invoice_number": self.invoice_number,
            "amount": money_str(self.amount),
            "tax_amount": money_str(self.tax_amount),
            "discount_amount": money_str(self.discount_amount),
            "shipping_amount": money_str(self.shipping_amount),
            "net_amount": money_str(self.net_amount),
            "revenue_amount": money_str(self.revenue_amount),
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "payment_reference": self.payment_reference,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "financial_year": self.financial_year,
            "accounting_period": self.accounting_period,
            "description": self.description,
            "source": self.source,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class CompanySettings(db.Model):
    """Seller identity. state is the seller region for the GST split."""
    __tablename__ = "company_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    gstin = db.Column(db.String(32), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "gstin": self.gstin,
            "state": self.state,
            "updated_at": to_utc_z(self.updated_at),
        }
