"""Deterministic post-processing of model-produced intent hints.

This is the only place that produces the numbers of a `ParsedIntentResponse`. The model output is
treated as hints: symbols are re-normalized, the pair is re-checked, amounts are re-parsed at token
precision and the minimum receive amount is recomputed with exact integer arithmetic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from intent_coordinator.amounts.fixed_point import (
    InvalidDecimal,
    convert_with_slippage,
    format_int_to_decimal,
    parse_decimal_to_int,
    parse_usd_price_to_micros,
)
from intent_coordinator.intent.errors import ParserUnavailable, UnparseableIntent
from intent_coordinator.intent.schema import (
    MAX_EXPIRY_MINUTES,
    MAX_SLIPPAGE_BPS,
    MIN_EXPIRY_MINUTES,
    SUPPORTED_SYMBOLS,
    StructuredIntent,
)
from intent_coordinator.tokens.models import TokenEntry
from intent_coordinator.tokens.registry import RegistryUnavailable, pick_by_symbol

# Single trading pair, both directions.
SUPPORTED_PAIRS: frozenset[tuple[str, str]] = frozenset({("SUI", "USDC"), ("USDC", "SUI")})

MS_PER_MINUTE = 60_000


class TokenSource(Protocol):
    async def get_tokens(self, network: str) -> tuple[TokenEntry, ...]:
        ...


@dataclass(frozen=True)
class IntentDefaults:
    """Server-side defaults applied when the model leaves a field null."""

    expiry_minutes: int
    max_slippage_bps: int


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ParsedIntent(_CamelModel):
    """Trusted, fully re-derived swap intent."""

    sell_token: str
    buy_token: str
    sell_amount: str
    min_buy_amount: str
    expires_at_ms: int


class ParsedIntentResponse(_CamelModel):
    """Public response of the free-text parsing operation."""

    raw_text: str
    parsed: ParsedIntent

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


def _normalize_symbol(symbol: str) -> str:
    value = symbol.strip().upper()
    if value not in SUPPORTED_SYMBOLS:
        raise UnparseableIntent(f"unsupported symbol={value}")
    return value


def _resolve(tokens: tuple[TokenEntry, ...], symbol: str) -> TokenEntry:
    token = pick_by_symbol(tokens, symbol)
    if token is None:
        raise UnparseableIntent(f"token not in registry symbol={symbol}")
    return token


def _parse_positive(value: str, decimals: int, field: str) -> int:
    try:
        atomic = parse_decimal_to_int(value, decimals)
    except InvalidDecimal as exc:
        raise UnparseableIntent(f"invalid {field}") from exc
    if atomic <= 0:
        raise UnparseableIntent(f"non-positive {field}")
    return atomic


def compute_expires_at_ms(now_ms: int, minutes: int | None, defaults: IntentDefaults) -> int:
    """Return the absolute expiry; the model value wins over the server default."""

    resolved = minutes if minutes is not None else defaults.expiry_minutes
    if not MIN_EXPIRY_MINUTES <= resolved <= MAX_EXPIRY_MINUTES:
        raise UnparseableIntent(f"expiry out of range minutes={resolved}")
    return now_ms + resolved * MS_PER_MINUTE


def compute_min_buy_amount(
        *,
        sell_token: TokenEntry,
        buy_token: TokenEntry,
        sell_atomic: int,
        min_buy_amount: str | None,
        max_slippage_bps: int | None,
        defaults: IntentDefaults,
) -> str:
    """Resolve the minimum receive amount as a decimal string at buy-token precision.

    An explicit minimum is used as-is (after re-validation). Otherwise the minimum is derived from
    indicative USD prices and the slippage tolerance.
    """

    if min_buy_amount is not None:
        min_atomic = _parse_positive(min_buy_amount, buy_token.decimals, "min_buy_amount")
        return format_int_to_decimal(min_atomic, buy_token.decimals)

    slippage_bps = max_slippage_bps if max_slippage_bps is not None else defaults.max_slippage_bps
    if not 0 <= slippage_bps <= MAX_SLIPPAGE_BPS:
        raise UnparseableIntent(f"slippage out of range bps={slippage_bps}")

    # Missing prices are a server-side data problem, not a user error.
    if not sell_token.indicative_price_usd or not buy_token.indicative_price_usd:
        raise ParserUnavailable("indicative price missing for slippage computation")
    try:
        sell_price = parse_usd_price_to_micros(sell_token.indicative_price_usd)
        buy_price = parse_usd_price_to_micros(buy_token.indicative_price_usd)
    except InvalidDecimal as exc:
        raise ParserUnavailable("indicative price is not a valid decimal") from exc
    if sell_price <= 0 or buy_price <= 0:
        raise ParserUnavailable("indicative price must be positive")

    conversion = convert_with_slippage(
        sell_atomic=sell_atomic,
        sell_decimals=sell_token.decimals,
        sell_price_micros=sell_price,
        buy_decimals=buy_token.decimals,
        buy_price_micros=buy_price,
        slippage_bps=slippage_bps,
    )
    if conversion.min_buy_atomic <= 0:
        raise UnparseableIntent("derived minimum is not positive")
    return format_int_to_decimal(conversion.min_buy_atomic, buy_token.decimals)


async def post_process_structured_intent(
        *,
        network: str,
        raw_text: str,
        structured: StructuredIntent,
        registry: TokenSource,
        defaults: IntentDefaults,
        now_ms: int,
) -> ParsedIntentResponse:
    """Turn validated model hints into the final response.

    Raises:
        UnparseableIntent: Any business-level check fails.
        ParserUnavailable: The registry or pricing data needed for the computation is unavailable.
    """

    if structured.min_buy_amount is not None and structured.max_slippage_bps is not None:
        raise UnparseableIntent("both min_buy_amount and max_slippage_bps provided")

    sell_symbol = _normalize_symbol(structured.sell_symbol)
    buy_symbol = _normalize_symbol(structured.buy_symbol)
    if sell_symbol == buy_symbol:
        raise UnparseableIntent("sell and buy symbols are equal")
    if (sell_symbol, buy_symbol) not in SUPPORTED_PAIRS:
        raise UnparseableIntent(f"unsupported pair {sell_symbol}->{buy_symbol}")

    try:
        tokens = await registry.get_tokens(network)
    except RegistryUnavailable as exc:
        raise ParserUnavailable("token registry unavailable") from exc
    sell_token = _resolve(tokens, sell_symbol)
    buy_token = _resolve(tokens, buy_symbol)

    sell_atomic = _parse_positive(structured.sell_amount, sell_token.decimals, "sell_amount")
    expires_at_ms = compute_expires_at_ms(now_ms, structured.expires_in_minutes, defaults)

    min_buy_amount = compute_min_buy_amount(
        sell_token=sell_token,
        buy_token=buy_token,
        sell_atomic=sell_atomic,
        min_buy_amount=structured.min_buy_amount,
        max_slippage_bps=structured.max_slippage_bps,
        defaults=defaults,
    )

    return ParsedIntentResponse(
        raw_text=raw_text,
        parsed=ParsedIntent(
            sell_token=sell_token.id,
            buy_token=buy_token.id,
            sell_amount=format_int_to_decimal(sell_atomic, sell_token.decimals),
            min_buy_amount=min_buy_amount,
            expires_at_ms=expires_at_ms,
        ),
    )
