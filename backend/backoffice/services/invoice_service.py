# Overview: Invoice numbering and financial-period tagging.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy import update

from ..errors import InvoiceSettingsError
from ..extensions import db
from ..models import InvoiceSettings, DEFAULT_INVOICE_FORMAT
from ..time_utils import as_date
from .concurrency import begin_write, lock_for_update


DEFAULT_FY_START_MONTH = 4
MIN_SEQUENCE_LENGTH = 1
MAX_SEQUENCE_LENGTH = 10


@dataclass(frozen=True)
class FinancialPeriod:
    financial_year: str     # e.g. "2026-27"
    accounting_period: str  # e.g. "2026-10"

    def to_dict(self) -> dict:
        return {
            "financial_year": self.financial_year,
            "accounting_period": self.accounting_period,
        }


def financial_year_label(on_date: date, start_month: int = DEFAULT_FY_START_MONTH) -> str:
    """
    FY label "YYYY-YY". The year rolls over on the first day of start_month.

    With the April default, 2026-03-31 is "2025-26" and 2026-04-01 is "2026-27".
    """
    start_year = on_date.year if on_date.month >= start_month else on_date.year - 1
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def _active_settings() -> InvoiceSettings | None:
    return (
        db.session.query(InvoiceSettings)
        .filter_by(is_active=True)
        .order_by(InvoiceSettings.id)
        .first()
    )


def resolve_financial_year(settings: InvoiceSettings | None, on_date: date) -> str:
    if settings is None:
        return financial_year_label(on_date)
    if not settings.auto_financial_year and settings.manual_financial_year:
        return settings.manual_financial_year
    return financial_year_label(on_date, settings.financial_year_start_month or DEFAULT_FY_START_MONTH)


def get_financial_period(on_date: date | datetime | None = None) -> FinancialPeriod:
    """Financial year + accounting period (YYYY-MM) for a date."""
    day = as_date(on_date)
    settings = _active_settings()
    return FinancialPeriod(
        financial_year=resolve_financial_year(settings, day),
        accounting_period=f"{day.year:04d}-{day.month:02d}",
    )


def format_invoice_number(settings: InvoiceSettings, sequence_no: int, on_date: date) -> str:
    seq = str(sequence_no).zfill(settings.sequence_length or MIN_SEQUENCE_LENGTH)
    template = settings.invoice_format or DEFAULT_INVOICE_FORMAT
    return (
        template
        .replace("{PREFIX}", settings.invoice_prefix or "")
        .replace("{FY}", resolve_financial_year(settings, on_date))
        .replace("{SEQ}", seq)
    )


def allocate_invoice_number(on_date: date | datetime | None = None) -> str | None:
    """
    Take the next invoice number inside the caller's transaction.

    The settings row is locked and the counter bumped with
    UPDATE ... SET current_sequence_no = current_sequence_no + 1, so two
    transactions can never read the same value. Returns None (and the order
    goes ahead without an invoice number) when no active settings exist.
    """
    day = as_date(on_date)
    settings = lock_for_update(
        db.session.query(InvoiceSettings).filter_by(is_active=True).order_by(InvoiceSettings.id)
    ).first()
    if settings is None:
        current_app.logger.warning("No active invoice settings; order will have no invoice number")
        return None

    db.session.execute(
        update(InvoiceSettings)
        .where(InvoiceSettings.id == settings.id)
        .values(current_sequence_no=InvoiceSettings.current_sequence_no + 1)
    )
    current = (
        db.session.query(InvoiceSettings.current_sequence_no)
        .filter_by(id=settings.id)
        .scalar()
    )
    return format_invoice_number(settings, current - 1, day)


def get_invoice_settings() -> InvoiceSettings:
    """Current settings row; a default one is created on first read."""
    settings = db.session.query(InvoiceSettings).order_by(InvoiceSettings.id).first()
    if settings is None:
        settings = InvoiceSettings(
            invoice_prefix="INV",
            sequence_length=4,
            invoice_format=DEFAULT_INVOICE_FORMAT,
            current_sequence_no=1,
            auto_financial_year=True,
            financial_year_start_month=DEFAULT_FY_START_MONTH,
            is_active=True,
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def update_invoice_settings(data: dict) -> InvoiceSettings:
    """
    Validate and apply an invoice settings update.

    Rules: prefix required, sequence_length 1..10, format contains {SEQ},
    financial_year_start_month 1..12, current_sequence_no may not go down.
    """
    settings = get_invoice_settings()
    begin_write()
    settings = lock_for_update(db.session.query(InvoiceSettings).filter_by(id=settings.id)).first()

    errors: dict[str, str] = {}

    prefix = data.get("invoice_prefix", settings.invoice_prefix)
    if prefix is None or not str(prefix).strip():
        errors["invoice_prefix"] = "Invoice prefix is required"
    else:
        prefix = str(prefix).strip()

    length = data.get("sequence_length", settings.sequence_length)
    try:
        length = int(length)
        if not MIN_SEQUENCE_LENGTH <= length <= MAX_SEQUENCE_LENGTH:
            raise ValueError
    except (TypeError, ValueError):
        errors["sequence_length"] = (
            f"Sequence length must be between {MIN_SEQUENCE_LENGTH} and {MAX_SEQUENCE_LENGTH}"
        )

    template = data.get("invoice_format", settings.invoice_format) or DEFAULT_INVOICE_FORMAT
    if "{SEQ}" not in template:
        errors["invoice_format"] = "Invoice format must contain {SEQ}"

    start_month = data.get("financial_year_start_month", settings.financial_year_start_month)
    try:
        start_month = int(start_month)
        if not 1 <= start_month <= 12:
            raise ValueError
    except (TypeError, ValueError):
        errors["financial_year_start_month"] = "Financial year start month must be 1-12"

    next_no = data.get("current_sequence_no", settings.current_sequence_no)
    try:
        next_no = int(next_no)
        if next_no < settings.current_sequence_no:
            errors["current_sequence_no"] = (
                f"Sequence cannot move backwards (currently {settings.current_sequence_no})"
            )
    except (TypeError, ValueError):
        errors["current_sequence_no"] = "Sequence number must be an integer"

    auto_fy = bool(data.get("auto_financial_year", settings.auto_financial_year))
    manual_fy = data.get("manual_financial_year", settings.manual_financial_year)
    if not auto_fy and not (manual_fy and str(manual_fy).strip()):
        errors["manual_financial_year"] = "Manual financial year is required when auto financial year is off"

    if errors:
        db.session.rollback()
        raise InvoiceSettingsError("Invalid invoice settings", details=errors)

    settings.invoice_prefix = prefix
    settings.sequence_length = length
    settings.invoice_format = template
    settings.financial_year_start_month = start_month
    settings.current_sequence_no = next_no
    settings.auto_financial_year = auto_fy
    settings.manual_financial_year = str(manual_fy).strip() if manual_fy else None
    if "is_active" in data:
        settings.is_active = bool(data["is_active"])

    db.session.commit()
    current_app.logger.info(
        "Invoice settings updated: prefix=%s format=%s next=%s",
        settings.invoice_prefix, settings.invoice_format, settings.current_sequence_no,
    )
    return settings
