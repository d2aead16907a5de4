"""Base-10 scaled integer conversions.

Amounts are carried as integers multiplied by `10**decimals` ("atomic" amounts). Every division in
this module truncates toward zero; all operands are non-negative, so floor division is exact
truncation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

USD_PRICE_DECIMALS = 6
BPS_DENOMINATOR = 10_000

_DECIMAL_RE = re.compile(r"^[0-9]+(?:\.[0-9]+)?$")


class InvalidDecimal(ValueError):
    """Raised when a string is not a plain non-negative decimal at the requested precision."""


@dataclass(frozen=True)
class PriceConversion:
    """Intermediate and final values of a price-based minimum-receive computation."""

    usd_micros: int
    expected_buy_atomic: int
    min_buy_atomic: int


def parse_decimal_to_int(value: str, decimals: int) -> int:
    """Parse a decimal string into an atomic integer at `decimals` precision.

    Only ASCII digits with an optional fractional part are accepted (no sign, no exponent, no
    thousands separators). Surrounding whitespace is ignored.

    Raises:
        InvalidDecimal: If the value is malformed or has more than `decimals` fractional digits.
    """

    if decimals < 0:
        raise InvalidDecimal("decimals must be non-negative")

    trimmed = value.strip()
    if not _DECIMAL_RE.fullmatch(trimmed):
        raise InvalidDecimal("invalid decimal string")

    whole, _, frac = trimmed.partition(".")
    if len(frac) > decimals:
        raise InvalidDecimal("too many fractional digits")

    return int(whole) * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")


def format_int_to_decimal(value: int, decimals: int) -> str:
    """Render an atomic integer as a decimal string.

    Trailing fractional zeros are trimmed and the fraction is dropped entirely when it is zero.
    """

    if value < 0:
        raise ValueError("value must be non-negative")
    if decimals < 0:
        raise ValueError("decimals must be non-negative")

    whole, frac = divmod(value, 10 ** decimals)
    if decimals == 0 or frac == 0:
        return str(whole)

    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac_str}"


def parse_usd_price_to_micros(price_usd: str) -> int:
    """Parse an indicative USD price at the fixed 6-decimal scale."""

    return parse_decimal_to_int(price_usd, USD_PRICE_DECIMALS)


def convert_with_slippage(
        *,
        sell_atomic: int,
        sell_decimals: int,
        sell_price_micros: int,
        buy_decimals: int,
        buy_price_micros: int,
        slippage_bps: int,
) -> PriceConversion:
    """Convert a sell amount into a slippage-adjusted minimum buy amount via USD prices.

    The computation is:
        usd_micros = sell_atomic * sell_price_micros / 10**sell_decimals
        expected   = usd_micros * 10**buy_decimals / buy_price_micros
        minimum    = expected * (10000 - slippage_bps) / 10000

    with every division truncating.
    """

    if buy_price_micros <= 0:
        raise ValueError("buy price must be positive")
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError("slippage_bps must be within 0..10000")
    if sell_atomic < 0 or sell_price_micros < 0:
        raise ValueError("amounts and prices must be non-negative")

    usd_micros = (sell_atomic * sell_price_micros) // 10 ** sell_decimals
    expected_buy_atomic = (usd_micros * 10 ** buy_decimals) // buy_price_micros
    min_buy_atomic = (expected_buy_atomic * (BPS_DENOMINATOR - slippage_bps)) // BPS_DENOMINATOR

    return PriceConversion(
        usd_micros=usd_micros,
        expected_buy_atomic=expected_buy_atomic,
        min_buy_atomic=min_buy_atomic,
    )
