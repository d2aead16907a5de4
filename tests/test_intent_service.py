"""Tests for the free-text pipeline orchestration (guards, model call, post-processing)."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from intent_coordinator.guards.rate_limit import FixedWindowRateLimiter
from intent_coordinator.guards.ttl_cache import TtlCache
from intent_coordinator.intent.errors import (
    PUBLIC_ERRORS,
    IdempotencyKeyConflict,
    IntentErrorCode,
    InvalidInput,
    ParserUnavailable,
    RateLimited,
    UnparseableIntent,
)
from intent_coordinator.intent.llm_client import ParserTimeout
from intent_coordinator.intent.postprocess import IntentDefaults
from intent_coordinator.intent.schema import SchemaViolation, StructuredIntent
from intent_coordinator.intent.service import IntentService, hash_request_text
from intent_coordinator.tokens.registry import TokenRegistry

NOW_MS = 1_700_000_000_000


class _FakeAiClient:
    """Returns a scripted structured intent (or raises) and records every call."""

    def __init__(self, result: StructuredIntent | Exception) -> None:
        self.result = result
        self.calls: list[dict[str, Any]] = []

    async def parse_intent_from_text(
            self, *, model: str, text: str, timeout_ms: int
    ) -> StructuredIntent:
        self.calls.append({"model": model, "text": text, "timeout_ms": timeout_ms})
        await asyncio.sleep(0)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _structured(**overrides: Any) -> StructuredIntent:
    fields: dict[str, Any] = {"sell_symbol": "SUI", "buy_symbol": "USDC", "sell_amount": "10"}
    fields.update(overrides)
    return StructuredIntent(**fields)


def _service(
        tokens_dir: Path,
        ai_client: _FakeAiClient | None,
        *,
        rate_limit: int = 30,
        model: str | None = "gpt-test",
) -> IntentService:
    return IntentService(
        registry=TokenRegistry(tokens_dir),
        ai_client=ai_client,
        model=model,
        defaults=IntentDefaults(expiry_minutes=15, max_slippage_bps=100),
        max_text_len=50,
        timeout_ms=10_000,
        idempotency=TtlCache(ttl_ms=600_000),
        rate_limiter=FixedWindowRateLimiter(limit=rate_limit, window_ms=60_000),
        now_ms=lambda: NOW_MS,
    )


@pytest.mark.asyncio
async def test_swap_ten_sui_to_usdc_end_to_end(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())
    service = _service(tokens_dir, ai)

    response = await service.parse_free_text(
        network="devnet", raw_text="Swap 10 SUI to USDC", caller="1.2.3.4"
    )

    assert response.parsed.sell_amount == "10"
    assert response.parsed.min_buy_amount == "29.7"
    assert response.parsed.expires_at_ms == NOW_MS + 15 * 60_000
    assert ai.calls == [{"model": "gpt-test", "text": "Swap 10 SUI to USDC", "timeout_ms": 10_000}]


@pytest.mark.asyncio
async def test_explicit_minimum_end_to_end(tokens_dir: Path) -> None:
    service = _service(tokens_dir, _FakeAiClient(_structured(sell_amount="1", min_buy_amount="1.9")))

    response = await service.parse_free_text(
        network="devnet", raw_text="Swap 1 SUI to USDC, min 1.9 USDC", caller="c"
    )

    assert response.parsed.min_buy_amount == "1.9"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_text", [None, 42, "", "   ", "x" * 51])
async def test_invalid_input_never_reaches_the_model(tokens_dir: Path, raw_text: Any) -> None:
    ai = _FakeAiClient(_structured())

    with pytest.raises(InvalidInput):
        await _service(tokens_dir, ai).parse_free_text(network="devnet", raw_text=raw_text, caller="c")
    assert ai.calls == []


@pytest.mark.asyncio
async def test_unsupported_token_mention_never_reaches_the_model(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())

    with pytest.raises(UnparseableIntent):
        await _service(tokens_dir, ai).parse_free_text(
            network="devnet", raw_text="Swap 10 BTC to USDC", caller="c"
        )
    assert ai.calls == []


@pytest.mark.asyncio
async def test_same_symbol_calls_model_but_not_registry(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured(buy_symbol="SUI"))
    service = _service(tokens_dir, ai)

    # No catalog exists for this network: reaching the registry would be a 503, not a 422.
    with pytest.raises(UnparseableIntent):
        await service.parse_free_text(network="nocatalog", raw_text="Swap 1 SUI to SUI", caller="c")
    assert len(ai.calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        ParserTimeout("deadline"),
        SchemaViolation("bad output"),
        json.JSONDecodeError("bad", "{", 0),
        ConnectionError("reset"),
    ],
)
async def test_model_failures_become_parser_unavailable(tokens_dir: Path, error: Exception) -> None:
    with pytest.raises(ParserUnavailable) as exc_info:
        await _service(tokens_dir, _FakeAiClient(error)).parse_free_text(
            network="devnet", raw_text="Swap 10 SUI to USDC", caller="c"
        )
    assert exc_info.value.safe_message == "Intent parsing service temporarily unavailable."


@pytest.mark.asyncio
async def test_unconfigured_model_is_unavailable(tokens_dir: Path) -> None:
    with pytest.raises(ParserUnavailable):
        await _service(tokens_dir, None).parse_free_text(
            network="devnet", raw_text="Swap 10 SUI to USDC", caller="c"
        )
    with pytest.raises(ParserUnavailable):
        await _service(tokens_dir, _FakeAiClient(_structured()), model=None).parse_free_text(
            network="devnet", raw_text="Swap 10 SUI to USDC", caller="c"
        )


@pytest.mark.asyncio
async def test_missing_prices_are_unavailable(tokens_dir: Path) -> None:
    with pytest.raises(ParserUnavailable):
        await _service(tokens_dir, _FakeAiClient(_structured())).parse_free_text(
            network="pricefree", raw_text="Swap 10 SUI to USDC", caller="c"
        )


@pytest.mark.asyncio
async def test_idempotent_replay_calls_model_once(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())
    service = _service(tokens_dir, ai)

    first = await service.parse_free_text_with_source(
        network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key="abc"
    )
    second = await service.parse_free_text_with_source(
        network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key=" abc "
    )

    assert (first.source, second.source) == ("model", "cache")
    assert second.response.to_payload() == first.response.to_payload()
    assert len(ai.calls) == 1


@pytest.mark.asyncio
async def test_idempotency_key_reused_for_different_text_conflicts(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())
    service = _service(tokens_dir, ai)
    await service.parse_free_text(
        network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key="abc"
    )

    with pytest.raises(IdempotencyKeyConflict):
        await service.parse_free_text(
            network="devnet", raw_text="Swap 11 SUI to USDC", caller="c", idempotency_key="abc"
        )
    assert len(ai.calls) == 1


@pytest.mark.asyncio
async def test_idempotency_keys_are_scoped_per_network_and_key(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())
    service = _service(tokens_dir, ai)

    for key in ("k1", "k2"):
        await service.parse_free_text(
            network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key=key
        )

    assert len(ai.calls) == 2


@pytest.mark.asyncio
async def test_errors_are_not_cached(tokens_dir: Path) -> None:
    ai = _FakeAiClient(ParserTimeout("deadline"))
    service = _service(tokens_dir, ai)

    with pytest.raises(ParserUnavailable):
        await service.parse_free_text(
            network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key="abc"
        )
    ai.result = _structured()
    response = await service.parse_free_text(
        network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key="abc"
    )

    assert response.parsed.min_buy_amount == "29.7"
    assert len(ai.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_duplicates_both_reach_the_model(tokens_dir: Path) -> None:
    ai = _FakeAiClient(_structured())
    service = _service(tokens_dir, ai)

    await asyncio.gather(
        *(
            service.parse_free_text(
                network="devnet", raw_text="Swap 10 SUI to USDC", caller="c", idempotency_key="k"
            )
            for _ in range(2)
        )
    )

    assert len(ai.calls) == 2


@pytest.mark.asyncio
async def test_rate_limit_applies_per_network_and_caller(tokens_dir: Path) -> None:
    service = _service(tokens_dir, _FakeAiClient(_structured()), rate_limit=2)

    for _ in range(2):
        await service.parse_free_text(network="devnet", raw_text="Swap 10 SUI to USDC", caller="a")
    with pytest.raises(RateLimited):
        await service.parse_free_text(network="devnet", raw_text="Swap 10 SUI to USDC", caller="a")

    await service.parse_free_text(network="devnet", raw_text="Swap 10 SUI to USDC", caller="b")


def test_public_error_table() -> None:
    assert {code: (e.status_code, e.message) for code, e in PUBLIC_ERRORS.items()} == {
        IntentErrorCode.INVALID_INPUT: (400, "Invalid intent text."),
        IntentErrorCode.UNPARSEABLE_INTENT: (422, "Unable to parse intent. Please rephrase."),
        IntentErrorCode.PARSER_UNAVAILABLE: (503, "Intent parsing service temporarily unavailable."),
        IntentErrorCode.IDEMPOTENCY_KEY_CONFLICT: (409, "Idempotency key conflict."),
        IntentErrorCode.RATE_LIMITED: (429, "Too many requests."),
    }


def test_rejection_reason_is_not_the_public_message() -> None:
    error = UnparseableIntent("sell and buy symbols are equal")

    assert error.status_code == 422
    assert error.safe_message == "Unable to parse intent. Please rephrase."
    assert "symbols" not in error.safe_message


def test_hash_request_text() -> None:
    assert hash_request_text("a") == hash_request_text("a")
    assert hash_request_text("a") != hash_request_text("b")
    assert hash_request_text(None) == ""
