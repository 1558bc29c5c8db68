# Overview: GST pricing. Splits tax-inclusive prices into base + CGST/SGST or IGST.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..money import HUNDRED, ZERO, quantize_money, to_decimal


GST_SPLIT = "cgst_sgst"
GST_SINGLE = "igst"

TWO = Decimal("2")


def normalize_region(region: str | None) -> str:
    """Case- and whitespace-insensitive form of a state/region name."""
    if not region:
        return ""
    return "".join(str(region).split()).lower()


def determine_gst_type(seller_region: str | None, buyer_region: str | None) -> str:
    """
    Intra-state supply -> CGST + SGST, inter-state -> IGST.

    A missing region on either side is treated as intra-state.
    """
    seller = normalize_region(seller_region)
    buyer = normalize_region(buyer_region)
    if not seller or not buyer:
        return GST_SPLIT
    return GST_SPLIT if seller == buyer else GST_SINGLE


@dataclass(frozen=True)
class TaxableLine:
    """A basket line as seen by the tax engine. unit_price is GST-inclusive."""
    quantity: int
    unit_price: Decimal
    gst_rate: Decimal = ZERO
    discount_percent: Decimal = ZERO
    key: str | None = None


@dataclass(frozen=True)
class PricedLine:
    quantity: int
    unit_price: Decimal
    gst_rate: Decimal
    discount_percent: Decimal
    line_total: Decimal        # inclusive, after line discount
    line_base: Decimal
    base_unit_price: Decimal
    tax_amount: Decimal
    unit_tax: Decimal
    cgst_rate: Decimal
    sgst_rate: Decimal
    igst_rate: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    key: str | None = None


@dataclass(frozen=True)
class PricedOrder:
    """
    Result of price_order.

    Line and aggregate amounts are unrounded; only `total` is rounded
    (2 places, half-up). Use the *_rounded helpers when persisting.
    """
    gst_type: str
    seller_region: str | None
    buyer_region: str | None
    lines: tuple = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    coupon_discount: Decimal = ZERO
    shipping_charge: Decimal = ZERO
    cgst_amount: Decimal = ZERO
    sgst_amount: Decimal = ZERO
    igst_amount: Decimal = ZERO
    total_tax: Decimal = ZERO
    total: Decimal = ZERO

    def rounded(self, name: str) -> Decimal:
        return quantize_money(getattr(self, name))

    def to_payload(self) -> dict:
        """JSON-safe snapshot (Decimals as strings)."""
        return {
            "gst_type": self.gst_type,
            "seller_region": self.seller_region,
            "buyer_region": self.buyer_region,
            "lines": [_line_to_payload(line) for line in self.lines],
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "coupon_discount": str(self.coupon_discount),
            "shipping_charge": str(self.shipping_charge),
            "cgst_amount": str(self.cgst_amount),
            "sgst_amount": str(self.sgst_amount),
            "igst_amount": str(self.igst_amount),
            "total_tax": str(self.total_tax),
            "total": str(self.total),
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "PricedOrder":
        money_fields = (
            "subtotal", "discount", "coupon_discount", "shipping_charge",
            "cgst_amount", "sgst_amount", "igst_amount", "total_tax", "total",
        )
        return cls(
            gst_type=payload["gst_type"],
            seller_region=payload.get("seller_region"),
            buyer_region=payload.get("buyer_region"),
            lines=tuple(_line_from_payload(line) for line in payload.get("lines", [])),
            **{name: Decimal(payload[name]) for name in money_fields},
        )


_LINE_DECIMAL_FIELDS = (
    "unit_price", "gst_rate", "discount_percent", "line_total", "line_base",
    "base_unit_price", "tax_amount", "unit_tax", "cgst_rate", "sgst_rate",
    "igst_rate", "cgst_amount", "sgst_amount", "igst_amount",
)


def _line_to_payload(line: PricedLine) -> dict:
    data = {name: str(getattr(line, name)) for name in _LINE_DECIMAL_FIELDS}
    data["quantity"] = line.quantity
    data["key"] = line.key
    return data


def _line_from_payload(data: dict) -> PricedLine:
    return PricedLine(
        quantity=int(data["quantity"]),
        key=data.get("key"),
        **{name: Decimal(data[name]) for name in _LINE_DECIMAL_FIELDS},
    )


def price_line(line: TaxableLine, gst_type: str) -> PricedLine:
    """
    Back-calculate base and tax from a tax-inclusive line.

    base = inclusive / (1 + rate/100), tax = inclusive - base, so base + tax is
    exactly the inclusive amount. A percentage line discount is taken off the
    inclusive amount first.
    """
    if line.quantity <= 0:
        raise ValueError("quantity must be positive")

    unit_price = to_decimal(line.unit_price, field="unit_price")
    rate = to_decimal(line.gst_rate, field="gst_rate")
    discount_percent = to_decimal(line.discount_percent, field="discount_percent")

    inclusive = unit_price * line.quantity
    if discount_percent:
        inclusive = inclusive - (inclusive * discount_percent / HUNDRED)

    if rate > ZERO:
        base = inclusive / (1 + rate / HUNDRED)
        tax = inclusive - base
    else:
        base = inclusive
        tax = ZERO

    if gst_type == GST_SPLIT:
        cgst = sgst = tax / TWO
        igst = ZERO
        cgst_rate = sgst_rate = rate / TWO
        igst_rate = ZERO
    else:
        cgst = sgst = ZERO
        igst = tax
        cgst_rate = sgst_rate = ZERO
        igst_rate = rate

    return PricedLine(
        quantity=line.quantity,
        unit_price=unit_price,
        gst_rate=rate,
        discount_percent=discount_percent,
        line_total=inclusive,
        line_base=base,
        base_unit_price=base / line.quantity,
        tax_amount=tax,
        unit_tax=tax / line.quantity,
        cgst_rate=cgst_rate,
        sgst_rate=sgst_rate,
        igst_rate=igst_rate,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        key=line.key,
    )


def price_order(
    items: Iterable[TaxableLine],
    seller_region: str | None,
    buyer_region: str | None,
    *,
    discount=ZERO,
    coupon_discount=ZERO,
    shipping_charge=ZERO,
) -> PricedOrder:
    """
    Price a basket.

    total = subtotal - discount - coupon_discount + shipping + total_tax,
    rounded to 2 places half-up. Nothing else is rounded.
    """
    gst_type = determine_gst_type(seller_region, buyer_region)
    priced_lines = tuple(price_line(item, gst_type) for item in items)

    discount = to_decimal(discount, field="discount")
    coupon_discount = to_decimal(coupon_discount, field="coupon_discount")
    shipping_charge = to_decimal(shipping_charge, field="shipping_charge")
    if discount < ZERO or coupon_discount < ZERO or shipping_charge < ZERO:
        raise ValueError("discount, coupon discount and shipping must not be negative")

    subtotal = sum((line.line_base for line in priced_lines), ZERO)
    cgst = sum((line.cgst_amount for line in priced_lines), ZERO)
    sgst = sum((line.sgst_amount for line in priced_lines), ZERO)
    igst = sum((line.igst_amount for line in priced_lines), ZERO)
    total_tax = sum((line.tax_amount for line in priced_lines), ZERO)

    total = subtotal - discount - coupon_discount + shipping_charge + total_tax

    return PricedOrder(
        gst_type=gst_type,
        seller_region=seller_region,
        buyer_region=buyer_region,
        lines=priced_lines,
        subtotal=subtotal,
        discount=discount,
        coupon_discount=coupon_discount,
        shipping_charge=shipping_charge,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        total_tax=total_tax,
        total=quantize_money(total),
    )
