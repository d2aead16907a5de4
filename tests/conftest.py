"""Pytest configuration.

The repository uses a flat layout without requiring an installed package. This conftest ensures tests
can import from the `intent_coordinator.*` namespace when running `pytest` locally, and provides a
temporary token catalog directory shared by several test modules.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Ensure `import intent_coordinator...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

DEVNET_TOKENS = [
    {"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9, "indicativePriceUsd": "3.00"},
    {"id": "0xUSDC", "symbol": "USDC", "decimals": 6, "indicativePriceUsd": "1.00"},
]


@pytest.fixture
def tokens_dir(tmp_path: Path) -> Path:
    """A catalog directory with a priced `devnet` network and an unpriced `pricefree` one."""

    (tmp_path / "tokens.devnet.json").write_text(json.dumps(DEVNET_TOKENS), encoding="utf-8")
    unpriced = [{k: v for k, v in t.items() if k != "indicativePriceUsd"} for t in DEVNET_TOKENS]
    (tmp_path / "tokens.pricefree.json").write_text(json.dumps(unpriced), encoding="utf-8")
    return tmp_path
