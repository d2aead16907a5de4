"""Pre-model guard against clearly out-of-scope token mentions.

The patterns only match explicit swap phrasing ("swap 10 BTC", "to ETH", "min 5 DAI"). Free text that
does not use such phrasing passes through untouched and is left to the model and the post-processor.
"""

from __future__ import annotations

import re

from intent_coordinator.intent.errors import UnparseableIntent
from intent_coordinator.intent.schema import SUPPORTED_SYMBOLS

_AMOUNT = r"\d+(?:\.\d+)?"
_SYMBOL = r"([a-z]{2,10})"

_SYMBOL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b(?:swap|sell)\s+{_AMOUNT}\s+{_SYMBOL}\b", flags=re.IGNORECASE),
    re.compile(rf"\b(?:to|for)\s+{_SYMBOL}\b", flags=re.IGNORECASE),
    re.compile(rf"\bmin\s+{_AMOUNT}\s+{_SYMBOL}\b", flags=re.IGNORECASE),
)


def extract_explicit_symbols(text: str) -> list[str]:
    """Return upper-cased symbols mentioned in recognized swap phrasing, in pattern order."""

    symbols: list[str] = []
    for pattern in _SYMBOL_PATTERNS:
        symbols.extend(m.group(1).strip().upper() for m in pattern.finditer(text))
    return [s for s in symbols if s]


def reject_unsupported_token_mentions(text: str) -> None:
    """Raise `UnparseableIntent` if recognized phrasing names a token outside the supported set."""

    for symbol in extract_explicit_symbols(text):
        if symbol not in SUPPORTED_SYMBOLS:
            raise UnparseableIntent(f"unsupported token mention symbol={symbol}")
