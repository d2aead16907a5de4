"""Application composition root.

This module wires together configuration, the token registry, the model client and the request guards
into a single `IntentService` shared by the HTTP layer and scripts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from intent_coordinator.config.settings import Settings
from intent_coordinator.guards.rate_limit import FixedWindowRateLimiter
from intent_coordinator.guards.ttl_cache import TtlCache
from intent_coordinator.intent.llm_client import IntentAiClient, LLMConfig, OpenAIIntentClient
from intent_coordinator.intent.postprocess import IntentDefaults
from intent_coordinator.intent.service import IdempotencyRecord, IntentService, epoch_ms
from intent_coordinator.tokens.registry import TokenRegistry

RATE_LIMIT_WINDOW_MS = 60_000


@dataclass(frozen=True)
class App:
    """Shared application dependencies for request handlers."""

    settings: Settings
    registry: TokenRegistry
    intents: IntentService


def create_ai_client(settings: Settings) -> IntentAiClient | None:
    """Build the provider client, or `None` when no API key is configured."""

    if settings.openai_api_key is None:
        return None
    return OpenAIIntentClient(
        LLMConfig(api_key=settings.openai_api_key, api_base=settings.openai_api_base)
    )


def create_app(
        settings: Settings,
        *,
        ai_client: IntentAiClient | None = None,
        now_ms: Callable[[], int] = epoch_ms,
) -> App:
    """Create the application container.

    Note:
        The model client does not open any connection here; the provider handle is created on the
        first parse request.
    """

    registry = TokenRegistry(settings.tokens_config_dir)
    intents = IntentService(
        registry=registry,
        ai_client=ai_client if ai_client is not None else create_ai_client(settings),
        model=settings.openai_model,
        defaults=IntentDefaults(
            expiry_minutes=settings.default_expiry_minutes,
            max_slippage_bps=settings.default_max_slippage_bps,
        ),
        max_text_len=settings.max_text_len,
        timeout_ms=settings.parser_timeout_ms,
        idempotency=TtlCache[str, IdempotencyRecord](settings.parser_idempotency_ttl_ms),
        rate_limiter=FixedWindowRateLimiter(
            limit=settings.parser_rate_limit_per_minute,
            window_ms=RATE_LIMIT_WINDOW_MS,
        ),
        now_ms=now_ms,
    )
    return App(settings=settings, registry=registry, intents=intents)
