"""Conversion of human-denominated asset amounts to smallest integer units."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from token_health_api.schemas.models import AssetType

MICRO_STX_PER_STX = 10 ** 6
SATS_PER_BTC = 10 ** 8

_UNIT_FACTORS = {
    AssetType.STX: MICRO_STX_PER_STX,
    AssetType.SBTC: SATS_PER_BTC,
}

Number = Union[int, float, str, Decimal]


def _scale(amount: Number, factor: int) -> int:
    # str() keeps 0.01 from turning into 0.01000000000000000020816...
    value = Decimal(str(amount)) * factor
    if value < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def stx_to_micro_stx(amount: Number) -> int:
    """Convert STX to microSTX."""
    return _scale(amount, MICRO_STX_PER_STX)


def btc_to_sats(amount: Number) -> int:
    """Convert BTC (or sBTC) to satoshis."""
    return _scale(amount, SATS_PER_BTC)


def to_smallest_unit(asset: AssetType, amount: Number) -> int:
    """Convert an amount of ``asset`` to its smallest unit."""
    return _scale(amount, _UNIT_FACTORS[asset])
