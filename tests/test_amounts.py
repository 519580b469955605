"""Unit tests for smallest-unit amount conversion."""

from decimal import Decimal

import pytest

from token_health_api.schemas.models import AssetType
from token_health_api.services.amounts import btc_to_sats, stx_to_micro_stx, to_smallest_unit


class TestAmountConversion:
    """Test suite for the amount converter."""

    def test_stx_price_to_micro_stx(self):
        """Test STX prices convert to microSTX from floats, ints and strings."""
        assert stx_to_micro_stx(0.01) == 10000
        assert stx_to_micro_stx(1) == 1_000_000
        assert stx_to_micro_stx("2.5") == 2_500_000

    def test_one_satoshi(self):
        """Test the smallest sBTC price maps to a single satoshi."""
        assert btc_to_sats(0.00000001) == 1
        assert btc_to_sats(Decimal("0.5")) == 50_000_000

    def test_rounds_half_up(self):
        """Test fractional base units round half-up."""
        assert stx_to_micro_stx(0.0000005) == 1
        assert stx_to_micro_stx(0.0000004) == 0
        assert btc_to_sats(0.000000015) == 2

    def test_zero_is_allowed(self):
        """Test a zero price converts to zero."""
        assert stx_to_micro_stx(0) == 0

    def test_negative_amount_rejected(self):
        """Test negative prices raise ValueError."""
        with pytest.raises(ValueError):
            stx_to_micro_stx(-0.01)

    def test_dispatch_by_asset(self):
        """Test conversion picks the unit factor for each asset."""
        assert to_smallest_unit(AssetType.STX, 0.01) == 10000
        assert to_smallest_unit(AssetType.SBTC, 0.01) == 1_000_000
