"""Parse a single free-text intent against the real model provider.

Intended for integration debugging: unlike the HTTP service, provider errors (401/404/timeouts) are
printed verbatim so a misconfigured key or model is easy to spot.

Usage:
    python -m intent_coordinator.scripts.parse_intent --network devnet --text "Swap 10 SUI to USDC"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from time import monotonic

from dotenv import load_dotenv

from intent_coordinator.config.logging import configure_logging
from intent_coordinator.config.settings import load_settings
from intent_coordinator.intent.errors import IntentError
from intent_coordinator.intent.llm_client import LLMConfig, OpenAIIntentClient
from intent_coordinator.intent.postprocess import IntentDefaults, post_process_structured_intent
from intent_coordinator.intent.service import epoch_ms
from intent_coordinator.tokens.registry import TokenRegistry


async def run(*, network: str, text: str, timeout_ms: int | None) -> int:
    """Call the provider once, post-process the result and print both stages as JSON."""

    settings = load_settings()
    if settings.openai_api_key is None or settings.openai_model is None:
        print("Missing OPENAI_API_KEY or OPENAI_MODEL in environment.", file=sys.stderr)
        return 2

    client = OpenAIIntentClient(
        LLMConfig(api_key=settings.openai_api_key, api_base=settings.openai_api_base)
    )
    started = monotonic()
    structured = await client.parse_intent_from_text(
        model=settings.openai_model,
        text=text,
        timeout_ms=timeout_ms or settings.parser_timeout_ms,
    )
    elapsed_ms = int((monotonic() - started) * 1000)
    print(json.dumps({"structured": structured.model_dump(), "elapsed_ms": elapsed_ms}, indent=2))

    try:
        response = await post_process_structured_intent(
            network=network,
            raw_text=text,
            structured=structured,
            registry=TokenRegistry(settings.tokens_config_dir),
            defaults=IntentDefaults(
                expiry_minutes=settings.default_expiry_minutes,
                max_slippage_bps=settings.default_max_slippage_bps,
            ),
            now_ms=epoch_ms(),
        )
    except IntentError as exc:
        print(f"post-processing rejected: code={exc.code} reason={exc.reason}", file=sys.stderr)
        return 1

    print(json.dumps(response.to_payload(), indent=2))
    return 0


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}")
    return value


def main() -> None:
    """CLI entry point."""

    parser = argparse.ArgumentParser(description="Parse one swap intent via the model provider.")
    parser.add_argument("--network", required=True, help="Token registry network (e.g. devnet).")
    parser.add_argument("--text", required=True, help="Free-text intent to parse.")
    parser.add_argument("--timeout-ms", type=_positive_int, default=None, help="Overall deadline.")
    args = parser.parse_args()

    if not args.network.strip() or not args.text.strip():
        parser.error("--network and --text must be non-empty")

    load_dotenv(".env")
    configure_logging()
    exit_code = asyncio.run(
        run(network=args.network.strip(), text=args.text.strip(), timeout_ms=args.timeout_ms)
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
