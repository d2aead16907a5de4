"""Tests for on-disk token catalogs and the per-network registry cache."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from intent_coordinator.tokens.models import TokenEntry
from intent_coordinator.tokens.registry import (
    RegistryUnavailable,
    TokenRegistry,
    load_tokens_from_disk,
    parse_tokens,
    pick_by_symbol,
)


def test_load_tokens_from_disk(tokens_dir: Path) -> None:
    tokens = load_tokens_from_disk(tokens_dir, "devnet")

    assert [t.symbol for t in tokens] == ["SUI", "USDC"]
    assert tokens[0].id == "0x2::sui::SUI"
    assert tokens[0].decimals == 9
    assert tokens[0].indicative_price_usd == "3.00"


def test_missing_catalog_is_unavailable(tmp_path: Path) -> None:
    with pytest.raises(RegistryUnavailable):
        load_tokens_from_disk(tmp_path, "nowhere")


@pytest.mark.parametrize(
    "document",
    [
        "not json",
        json.dumps({"id": "0x2::sui::SUI"}),
        json.dumps(["SUI"]),
        json.dumps([{"symbol": "SUI", "decimals": 9}]),
        json.dumps([{"id": " ", "symbol": "SUI", "decimals": 9}]),
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": -1}]),
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9.5}]),
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": "9"}]),
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9, "indicativePriceUsd": 3}]),
        json.dumps(
            [{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9, "indicativePriceUsd": None}]
        ),
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": float("inf")}]),
    ],
)
def test_invalid_catalogs_are_rejected(document: str) -> None:
    with pytest.raises(RegistryUnavailable):
        parse_tokens(document)


def test_token_entry_is_immutable() -> None:
    token = TokenEntry(id="0x2::sui::SUI", symbol="SUI", decimals=9)

    with pytest.raises(ValidationError):
        token.decimals = 6  # type: ignore[misc]


def test_pick_by_symbol_is_case_insensitive(tokens_dir: Path) -> None:
    tokens = load_tokens_from_disk(tokens_dir, "devnet")

    assert pick_by_symbol(tokens, "usdc") is tokens[1]
    assert pick_by_symbol(tokens, "USDT") is None


@pytest.mark.asyncio
async def test_registry_caches_by_normalized_network(tokens_dir: Path) -> None:
    registry = TokenRegistry(tokens_dir)

    first = await registry.get_tokens("devnet")
    # The file is gone, but the cached catalog is served for any spelling of the network.
    (tokens_dir / "tokens.devnet.json").unlink()
    second = await registry.get_tokens("  DevNet ")

    assert second is first
    assert isinstance(second, tuple)


@pytest.mark.asyncio
async def test_registry_does_not_cache_failures(tmp_path: Path) -> None:
    registry = TokenRegistry(tmp_path)

    with pytest.raises(RegistryUnavailable):
        await registry.get_tokens("devnet")

    (tmp_path / "tokens.devnet.json").write_text(
        json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9}]), encoding="utf-8"
    )
    tokens = await registry.get_tokens("devnet")
    assert tokens[0].indicative_price_usd is None


def test_integral_float_decimals_are_accepted() -> None:
    tokens = parse_tokens(json.dumps([{"id": "0x2::sui::SUI", "symbol": "SUI", "decimals": 9.0}]))

    assert tokens[0].decimals == 9
    assert isinstance(tokens[0].decimals, int)
