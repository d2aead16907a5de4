"""Free-text intent pipeline orchestration.

Per request, strictly in order:
    1) rate limit per (network, caller);
    2) idempotency lookup (replay or conflict);
    3) input validation and the pre-model token guard;
    4) model call (schema-validated hints);
    5) deterministic post-processing;
    6) idempotency write (successful responses only).

Two concurrent requests with the same idempotency key that both miss the cache will both reach the
model; the cache only deduplicates sequential retries.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from time import monotonic
from typing import Callable, Literal

from intent_coordinator.guards.rate_limit import FixedWindowRateLimiter
from intent_coordinator.guards.ttl_cache import TtlCache
from intent_coordinator.intent.errors import (
    IdempotencyKeyConflict,
    IntentError,
    InvalidInput,
    ParserUnavailable,
    RateLimited,
    UnparseableIntent,
)
from intent_coordinator.intent.llm_client import IntentAiClient
from intent_coordinator.intent.postprocess import (
    IntentDefaults,
    ParsedIntentResponse,
    TokenSource,
    post_process_structured_intent,
)
from intent_coordinator.intent.schema import StructuredIntent
from intent_coordinator.intent.text_guard import reject_unsupported_token_mentions

logger = logging.getLogger(__name__)

ParseSource = Literal["model", "cache"]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def hash_request_text(raw_text: object) -> str:
    """Return the sha256 hex digest of the raw text (empty string for non-string input)."""

    if not isinstance(raw_text, str):
        return ""
    return hashlib.sha256(raw_text.encode("utf-8")).hexdigest()


def validate_input_text(raw_text: object, max_len: int) -> str:
    """Return the text unchanged if it is a non-blank string of at most `max_len` characters."""

    if not isinstance(raw_text, str) or not raw_text.strip():
        raise InvalidInput("text missing or blank")
    if len(raw_text) > max_len:
        raise InvalidInput(f"text too long len={len(raw_text)}")
    return raw_text


@dataclass(frozen=True)
class IdempotencyRecord:
    """A successful response stored under an idempotency key."""

    request_text_hash: str
    response: ParsedIntentResponse


@dataclass(frozen=True)
class ParseResult:
    """Response plus information about where it came from."""

    response: ParsedIntentResponse
    source: ParseSource


class IntentService:
    """Owns the per-process guards and runs the free-text pipeline."""

    def __init__(
            self,
            *,
            registry: TokenSource,
            ai_client: IntentAiClient | None,
            model: str | None,
            defaults: IntentDefaults,
            max_text_len: int,
            timeout_ms: int,
            idempotency: TtlCache[str, IdempotencyRecord],
            rate_limiter: FixedWindowRateLimiter,
            now_ms: Callable[[], int] = epoch_ms,
    ) -> None:
        self.registry = registry
        self.ai_client = ai_client
        self.model = model
        self.defaults = defaults
        self.max_text_len = max_text_len
        self.timeout_ms = timeout_ms
        self.idempotency = idempotency
        self.rate_limiter = rate_limiter
        self.now_ms = now_ms

    async def _call_model(self, text: str) -> StructuredIntent:
        if self.ai_client is None or not self.model:
            raise ParserUnavailable("model client not configured")

        try:
            return await self.ai_client.parse_intent_from_text(
                model=self.model,
                text=text,
                timeout_ms=self.timeout_ms,
            )
        except Exception as exc:
            # The cause stays in the logs; callers only ever see the generic message.
            logger.warning("model call failed error=%s detail=%s", type(exc).__name__, exc)
            raise ParserUnavailable("model call failed") from exc

    async def _parse(
            self,
            *,
            network: str,
            raw_text: object,
            caller: str,
            idempotency_key: str | None,
    ) -> ParseResult:
        decision = self.rate_limiter.hit(f"{network}:{caller}", self.now_ms())
        if not decision.allowed:
            raise RateLimited(f"rate limited caller={caller}")

        key = (idempotency_key or "").strip()
        cache_key = f"{network}:{key}" if key else None
        text_hash = hash_request_text(raw_text)
        now = self.now_ms()

        if cache_key is not None:
            cached = self.idempotency.get(cache_key, now)
            if cached is not None:
                if cached.request_text_hash != text_hash:
                    raise IdempotencyKeyConflict("idempotency key reused with different text")
                return ParseResult(response=cached.response, source="cache")

        text = validate_input_text(raw_text, self.max_text_len)
        reject_unsupported_token_mentions(text)

        structured = await self._call_model(text)

        try:
            response = await post_process_structured_intent(
                network=network,
                raw_text=text,
                structured=structured,
                registry=self.registry,
                defaults=self.defaults,
                now_ms=self.now_ms(),
            )
        except IntentError:
            raise
        except ValueError as exc:
            raise UnparseableIntent("post-processing rejected model output") from exc

        if cache_key is not None:
            self.idempotency.set(
                cache_key,
                IdempotencyRecord(request_text_hash=text_hash, response=response),
                now,
            )
        return ParseResult(response=response, source="model")

    async def parse_free_text_with_source(
            self,
            *,
            network: str,
            raw_text: object,
            caller: str,
            idempotency_key: str | None = None,
    ) -> ParseResult:
        """Run the pipeline and report whether the response was computed or replayed.

        Raises:
            IntentError: One of the public error kinds; `reason` is for logs only.
        """

        started = monotonic()
        try:
            result = await self._parse(
                network=network,
                raw_text=raw_text,
                caller=caller,
                idempotency_key=idempotency_key,
            )
        except IntentError as exc:
            latency_ms = int((monotonic() - started) * 1000)
            logger.info(
                "rejected network=%s code=%s reason=%s latency_ms=%d",
                network,
                exc.code,
                exc.reason,
                latency_ms,
            )
            raise

        latency_ms = int((monotonic() - started) * 1000)
        logger.info(
            "handled network=%s source=%s sell=%s buy=%s latency_ms=%d",
            network,
            result.source,
            result.response.parsed.sell_token,
            result.response.parsed.buy_token,
            latency_ms,
        )
        return result

    async def parse_free_text(
            self,
            *,
            network: str,
            raw_text: object,
            caller: str,
            idempotency_key: str | None = None,
    ) -> ParsedIntentResponse:
        """Parse free text into a trusted intent (convenience wrapper)."""

        result = await self.parse_free_text_with_source(
            network=network,
            raw_text=raw_text,
            caller=caller,
            idempotency_key=idempotency_key,
        )
        return result.response
