"""
Pricing & Tax Engine.

Pure computation, no database access. Given MRP, margin, quantity and
GST rate per line plus the tax regime, produces unit prices, per-line
tax and invoice totals.

Rounding rules:
- unit_price = mrp x (1 + margin / 100), kept to 4 decimals
- line_total = unit_price x quantity, rounded half away from zero to the
  currency minor unit
- line GST = line_total x gst_rate / 100, not rounded; CGST and SGST
  are each exactly half of it
- round_off is taken once on the grand total so that total_amount is a
  whole currency unit
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Iterable, Optional, Union

from backoffice.config import settings
from backoffice.core.exceptions import InvalidMarginError, ValidationError


Number = Union[Decimal, int, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNIT_PRICE_QUANTUM = Decimal("0.0001")
WHOLE_UNIT = Decimal("1")
# Margins are stored as NUMERIC(6, 2)
MARGIN_QUANTUM = Decimal("0.01")
MARGIN_LIMIT = Decimal("10000")


def to_decimal(value: Number) -> Decimal:
    """Convert without going through float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_currency(amount: Decimal, minor_unit: Optional[Decimal] = None) -> Decimal:
    """Round half away from zero to the currency's minor unit."""
    return amount.quantize(minor_unit or settings.CURRENCY_MINOR_UNIT, rounding=ROUND_HALF_UP)


def _exact_unit_price(mrp: Number, margin_percentage: Number) -> Decimal:
    """
    Unrounded selling price to the store; line totals are priced from this.

    Raises:
        InvalidMarginError: if a negative margin pushes the price below zero
            or the margin does not fit the stored precision
    """
    mrp = to_decimal(mrp)
    margin = to_decimal(margin_percentage)
    if mrp < ZERO:
        raise ValidationError(f"MRP cannot be negative: {mrp}")
    if abs(margin) >= MARGIN_LIMIT or margin != margin.quantize(MARGIN_QUANTUM):
        raise InvalidMarginError(
            f"Margin {margin}% must have at most two decimals and stay below {MARGIN_LIMIT}%",
            details={"margin_percentage": str(margin)},
        )

    unit_price = mrp * (HUNDRED + margin) / HUNDRED
    if unit_price < ZERO:
        raise InvalidMarginError(
            f"Margin {margin}% would make the unit price negative for MRP {mrp}",
            details={"mrp": str(mrp), "margin_percentage": str(margin)},
        )
    return unit_price


def calculate_unit_price(mrp: Number, margin_percentage: Number) -> Decimal:
    """
    Selling price to the store, as stored on the invoice line.

    Raises:
        InvalidMarginError: if a negative margin pushes the price below zero
    """
    return _exact_unit_price(mrp, margin_percentage).quantize(UNIT_PRICE_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingLine:
    """One input line."""
    mrp: Decimal
    margin_percentage: Decimal
    quantity: int
    gst_rate: Decimal


@dataclass(frozen=True)
class PricedLine:
    mrp: Decimal
    margin_percentage: Decimal
    quantity: int
    gst_rate: Decimal
    unit_price: Decimal
    line_total: Decimal
    gst_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    is_igst: bool
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    round_off: Decimal
    total_amount: Decimal
    lines: List[PricedLine] = field(default_factory=list)

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def price_line(line: PricingLine, is_igst: bool) -> PricedLine:
    """Price and tax a single line."""
    quantity = int(line.quantity)
    if quantity <= 0:
        raise ValidationError(f"Quantity must be positive, got {line.quantity}")
    gst_rate = to_decimal(line.gst_rate)
    if gst_rate < ZERO:
        raise ValidationError(f"GST rate cannot be negative: {gst_rate}")

    exact_price = _exact_unit_price(line.mrp, line.margin_percentage)
    unit_price = exact_price.quantize(UNIT_PRICE_QUANTUM, rounding=ROUND_HALF_UP)
    # One rounding per line, from the exact price
    line_total = round_currency(exact_price * quantity)
    gst_amount = line_total * gst_rate / HUNDRED

    if is_igst:
        cgst_amount = sgst_amount = ZERO
        igst_amount = gst_amount
    else:
        # Exact halves; never rounded separately
        cgst_amount = sgst_amount = gst_amount / 2
        igst_amount = ZERO

    return PricedLine(
        mrp=to_decimal(line.mrp),
        margin_percentage=to_decimal(line.margin_percentage),
        quantity=quantity,
        gst_rate=gst_rate,
        unit_price=unit_price,
        line_total=line_total,
        gst_amount=gst_amount,
        cgst_amount=cgst_amount,
        sgst_amount=sgst_amount,
        igst_amount=igst_amount,
    )


def calculate_invoice(lines: Iterable[PricingLine], is_igst: bool) -> InvoiceTotals:
    """
    Price all lines and compute invoice totals.

    Identical inputs always give identical outputs.
    """
    priced = [price_line(line, is_igst) for line in lines]
    if not priced:
        raise ValidationError("At least one line is required")

    subtotal = sum((p.line_total for p in priced), ZERO)
    cgst = sum((p.cgst_amount for p in priced), ZERO)
    sgst = sum((p.sgst_amount for p in priced), ZERO)
    igst = sum((p.igst_amount for p in priced), ZERO)

    grand_total = subtotal + cgst + sgst + igst
    total_amount = grand_total.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)
    round_off = total_amount - grand_total

    return InvoiceTotals(
        is_igst=is_igst,
        subtotal=subtotal,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        round_off=round_off,
        total_amount=total_amount,
        lines=priced,
    )
