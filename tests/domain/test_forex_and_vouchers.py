"""
Tests for forex descriptors and voucher rendering.

Covers ``bullion_kernel.domain.forex`` and ``bullion_kernel.domain.vouchers``.
"""

from datetime import date
from decimal import Decimal

import pytest

from bullion_kernel.domain.forex import build_forex_value
from bullion_kernel.domain.vouchers import (
    DEFAULT_DATE_FORMAT,
    format_voucher_date,
    render_voucher_number,
    validate_date_format,
    validate_prefix,
    voucher_suffix,
)
from bullion_kernel.exceptions import InvalidEnumError, InvalidIdentifierError, InvalidNumberError


class TestBuildForexValue:
    """Gain/loss sign convention per fixing type."""

    def test_purchase_gain(self):
        """PURCHASE: market above given is a gain."""
        fx = build_forex_value("PURCHASE", "105", "100")
        assert fx.fx_gain == Decimal("5")
        assert fx.fx_loss == Decimal("0")
        assert fx.difference == Decimal("5")

    def test_purchase_loss(self):
        fx = build_forex_value("PURCHASE", "95", "100")
        assert fx.fx_gain == Decimal("0")
        assert fx.fx_loss == Decimal("5")

    def test_sale_inverts_the_difference(self):
        """SALE: given above market is a gain."""
        fx = build_forex_value("sale", "95", "100")
        assert fx.fx_gain == Decimal("5")
        fx = build_forex_value("SALE", "105", "100")
        assert fx.fx_loss == Decimal("5")

    def test_equal_values_no_gain_or_loss(self):
        fx = build_forex_value("PURCHASE", "100", "100")
        assert fx.fx_gain == fx.fx_loss == Decimal("0")

    def test_rates_carried(self):
        fx = build_forex_value("PURCHASE", 1, 1, purchase_rate="3.67", sell_rate=None, default_rate="")
        assert fx.purchase_rate == Decimal("3.67")
        assert fx.sell_rate is None
        assert fx.default_rate is None

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidNumberError):
            build_forex_value("PURCHASE", "abc", "100")


class TestRenderVoucherNumber:
    """Tests for prefix + zero-padded sequence rendering."""

    def test_zero_padded(self):
        assert render_voucher_number("SAL", 7, 4) == "SAL0007"

    def test_longer_than_padding(self):
        assert render_voucher_number("MP", 12345, 4) == "MP12345"


class TestVoucherSuffix:
    """Tests for numeric suffix extraction."""

    def test_suffix(self):
        assert voucher_suffix("DM0042", "DM") == 42

    def test_case_insensitive_prefix(self):
        assert voucher_suffix("dm0003", "DM") == 3

    def test_other_prefix(self):
        assert voucher_suffix("XX0003", "DM") is None

    def test_non_digit_rest(self):
        assert voucher_suffix("DM00A3", "DM") is None
        assert voucher_suffix("DM", "DM") is None


class TestVoucherFormatting:
    """Tests for prefix and date-format validation and rendering."""

    def test_prefix_normalized(self):
        assert validate_prefix(" sal ") == "SAL"

    @pytest.mark.parametrize("prefix", ["", None, "TOOLONG", "A-B"])
    def test_bad_prefix(self, prefix):
        with pytest.raises(InvalidIdentifierError):
            validate_prefix(prefix)

    def test_date_format_default(self):
        assert validate_date_format(None) == DEFAULT_DATE_FORMAT

    def test_unknown_date_format(self):
        with pytest.raises(InvalidEnumError):
            validate_date_format("YY.MM.DD")

    def test_format_voucher_date(self):
        day = date(2024, 3, 5)
        assert format_voucher_date(day, "DD/MM/YYYY") == "05/03/2024"
        assert format_voucher_date(day, "MM/DD/YYYY") == "03/05/2024"
        assert format_voucher_date(day, None) == "2024-03-05"
        assert format_voucher_date(day, "bogus") == "2024-03-05"
