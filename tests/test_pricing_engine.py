"""Pricing & tax engine: pure computation, no database."""
from decimal import Decimal

import pytest

from backoffice.core.exceptions import InvalidMarginError, ValidationError
from backoffice.services.pricing_engine import (
    PricingLine,
    calculate_invoice,
    calculate_unit_price,
    price_line,
    round_currency,
)


def line(mrp="100", margin="20", quantity=10, gst_rate="18"):
    return PricingLine(
        mrp=Decimal(mrp),
        margin_percentage=Decimal(margin),
        quantity=quantity,
        gst_rate=Decimal(gst_rate),
    )


class TestScenarios:
    def test_intra_state_invoice(self):
        totals = calculate_invoice([line()], is_igst=False)
        priced = totals.lines[0]

        assert priced.unit_price == Decimal("120.00")
        assert priced.line_total == Decimal("1200.00")
        assert priced.cgst_amount == Decimal("108.00")
        assert priced.sgst_amount == Decimal("108.00")
        assert priced.igst_amount == 0
        assert totals.subtotal == Decimal("1200.00")
        assert totals.total_tax == Decimal("216.00")
        assert totals.total_amount == Decimal("1416.00")
        assert totals.round_off == 0

    def test_inter_state_invoice(self):
        totals = calculate_invoice([line()], is_igst=True)

        assert totals.igst == Decimal("216.00")
        assert totals.cgst == 0
        assert totals.sgst == 0
        assert totals.total_amount == Decimal("1416.00")


class TestRounding:
    def test_line_total_rounds_half_away_from_zero(self):
        priced = price_line(line(mrp="0.125", margin="0", quantity=1, gst_rate="0"), is_igst=False)
        assert priced.line_total == Decimal("0.13")

    def test_cgst_and_sgst_are_exact_halves(self):
        # 10.50 x 5% = 0.525; halves are 0.2625, not rounded
        priced = price_line(line(mrp="10.50", margin="0", quantity=1, gst_rate="5"), is_igst=False)
        assert priced.cgst_amount == Decimal("0.2625")
        assert priced.cgst_amount == priced.sgst_amount
        assert priced.cgst_amount + priced.sgst_amount == priced.gst_amount

    def test_round_off_is_taken_once_on_grand_total(self):
        totals = calculate_invoice(
            [
                line(mrp="10.50", margin="0", quantity=1, gst_rate="5"),
                line(mrp="10.50", margin="0", quantity=1, gst_rate="5"),
            ],
            is_igst=False,
        )
        grand = totals.subtotal + totals.cgst + totals.sgst + totals.igst
        assert grand == Decimal("22.05")
        assert totals.total_amount == Decimal("22")
        assert totals.round_off == Decimal("-0.05")
        assert totals.total_amount - grand == totals.round_off

    def test_total_is_whole_currency_unit(self):
        totals = calculate_invoice(
            [line(mrp="37.35", margin="12.5", quantity=7, gst_rate="12")],
            is_igst=False,
        )
        assert totals.total_amount == totals.total_amount.to_integral_value()
        assert totals.total_amount == totals.subtotal + totals.total_tax + totals.round_off

    def test_identical_inputs_give_identical_outputs(self):
        lines = [line(mrp="99.99", margin="7.25", quantity=3, gst_rate="18"), line()]
        assert calculate_invoice(lines, is_igst=False) == calculate_invoice(lines, is_igst=False)

    def test_large_line_is_rounded_once_from_exact_price(self):
        # 33.33 x 1.1235 = 37.446255; x 1000 = 37446.255
        priced = price_line(line(mrp="33.33", margin="12.35", quantity=1000, gst_rate="18"), is_igst=False)
        assert priced.unit_price == Decimal("37.4463")
        assert priced.line_total == Decimal("37446.26")

    def test_round_currency_uses_minor_unit(self):
        assert round_currency(Decimal("2.345")) == Decimal("2.35")
        assert round_currency(Decimal("-2.345")) == Decimal("-2.35")


class TestMargins:
    def test_negative_margin_is_a_discount(self):
        assert calculate_unit_price(Decimal("100"), Decimal("-10")) == Decimal("90")

    def test_full_discount_gives_zero_price(self):
        assert calculate_unit_price(Decimal("100"), Decimal("-100")) == 0

    def test_margin_below_minus_hundred_is_rejected(self):
        with pytest.raises(InvalidMarginError):
            calculate_unit_price(Decimal("100"), Decimal("-100.5"))

    def test_margin_with_more_than_two_decimals_is_rejected(self):
        with pytest.raises(InvalidMarginError):
            calculate_unit_price(Decimal("100"), Decimal("12.345"))

    def test_margin_must_fit_stored_column(self):
        assert calculate_unit_price(Decimal("1"), Decimal("9999.99")) == Decimal("100.9999")
        with pytest.raises(InvalidMarginError):
            calculate_unit_price(Decimal("1"), Decimal("10000"))

    def test_trailing_zeros_are_accepted(self):
        assert calculate_unit_price(Decimal("100"), Decimal("12.500")) == Decimal("112.5")

    def test_invalid_margin_is_a_validation_error(self):
        assert issubclass(InvalidMarginError, ValidationError)


class TestValidation:
    def test_empty_invoice_is_rejected(self):
        with pytest.raises(ValidationError):
            calculate_invoice([], is_igst=False)

    def test_zero_quantity_is_rejected(self):
        with pytest.raises(ValidationError):
            price_line(line(quantity=0), is_igst=False)

    def test_negative_gst_rate_is_rejected(self):
        with pytest.raises(ValidationError):
            price_line(line(gst_rate="-1"), is_igst=False)
