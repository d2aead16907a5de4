"""Structured-output schema for the model's tool-call arguments (Pydantic models).

Model output is untrusted even when the provider was asked for schema-constrained output, so the
arguments are validated again here in two independent stages:

    1) wire decode: the raw argument string must be JSON (`decode_tool_arguments`);
    2) schema check: the decoded object must match `StructuredIntent` exactly (`intent_from_obj`).

The schema is closed: unknown keys, wrong types, unsupported symbols and out-of-range integers are
all rejected. Cross-field business rules (e.g. "explicit minimum XOR slippage") are NOT enforced here;
they belong to the deterministic post-processor.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

SUPPORTED_SYMBOLS: tuple[str, ...] = ("SUI", "USDC")

MAX_SLIPPAGE_BPS = 5000
MIN_EXPIRY_MINUTES = 1
MAX_EXPIRY_MINUTES = 1440

Symbol = Literal["SUI", "USDC"]


class SchemaViolation(ValueError):
    """Raised when decoded model output does not match the structured-intent schema."""


class StructuredIntent(BaseModel):
    """Swap intent hints produced by the language model."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    sell_symbol: Symbol
    buy_symbol: Symbol
    sell_amount: str
    min_buy_amount: str | None = None
    max_slippage_bps: int | None = Field(default=None, ge=0, le=MAX_SLIPPAGE_BPS)
    expires_in_minutes: int | None = Field(
        default=None, ge=MIN_EXPIRY_MINUTES, le=MAX_EXPIRY_MINUTES
    )


# Sent to the provider as the tool's `parameters`. Structured outputs require every property to be
# listed in `required`; optional fields are expressed as nullable instead of omitted.
TOOL_PARAMETERS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "sell_symbol",
        "buy_symbol",
        "sell_amount",
        "min_buy_amount",
        "max_slippage_bps",
        "expires_in_minutes",
    ],
    "properties": {
        "sell_symbol": {"type": "string", "enum": list(SUPPORTED_SYMBOLS)},
        "buy_symbol": {"type": "string", "enum": list(SUPPORTED_SYMBOLS)},
        "sell_amount": {"type": "string"},
        "min_buy_amount": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "max_slippage_bps": {
            "anyOf": [
                {"type": "integer", "minimum": 0, "maximum": MAX_SLIPPAGE_BPS},
                {"type": "null"},
            ]
        },
        "expires_in_minutes": {
            "anyOf": [
                {"type": "integer", "minimum": MIN_EXPIRY_MINUTES, "maximum": MAX_EXPIRY_MINUTES},
                {"type": "null"},
            ]
        },
    },
}


def decode_tool_arguments(raw: str) -> Any:
    """Decode the raw tool-call argument string (`json.JSONDecodeError` propagates)."""

    return json.loads(raw)


def intent_from_obj(obj: Any) -> StructuredIntent:
    """Validate and parse a StructuredIntent from an arbitrary decoded JSON object."""

    try:
        return StructuredIntent.model_validate(obj)
    except ValidationError as exc:
        raise SchemaViolation(f"structured output rejected: {exc.error_count()} error(s)") from exc


def intent_from_json(raw: str) -> StructuredIntent:
    """Run both validation stages over a raw tool-call argument string."""

    return intent_from_obj(decode_tool_arguments(raw))
