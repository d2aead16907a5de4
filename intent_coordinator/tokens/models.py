"""Token registry entry model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class TokenEntry(BaseModel):
    """A single token in a network catalog.

    `id` is the canonical on-chain coin type (e.g. `0x2::sui::SUI`). The indicative USD price is
    informational and kept as a decimal string so it can be parsed into fixed-point exactly. The
    price key may be omitted, but when present it must be a string.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: StrictStr
    symbol: StrictStr
    decimals: StrictInt = Field(ge=0)
    indicative_price_usd: StrictStr | None = Field(default=None, alias="indicativePriceUsd")

    @field_validator("id", "symbol")
    @classmethod
    def validate_non_empty(cls, value: str) -> str:
        """Reject empty or whitespace-only identifiers."""

        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value

    @field_validator("decimals", mode="before")
    @classmethod
    def integral_float_to_int(cls, value: Any) -> Any:
        # Hand-edited catalogs may spell `9` as `9.0`.
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @field_validator("indicative_price_usd", mode="before")
    @classmethod
    def reject_explicit_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("indicativePriceUsd must be a string when present")
        return value
