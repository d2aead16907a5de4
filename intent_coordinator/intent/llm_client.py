"""LLM-based structured intent extraction.

The model is only allowed to answer through a single `parse_intent` tool call whose arguments are
validated against the structured-intent schema. The call is compatible with OpenAI-style
`/v1/chat/completions` APIs.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from time import monotonic
from typing import Any, Callable, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from intent_coordinator.intent.schema import TOOL_PARAMETERS_SCHEMA, StructuredIntent, intent_from_json

logger = logging.getLogger(__name__)

TOOL_NAME = "parse_intent"

# Some models only accept the default sampling temperature and answer 400 for `temperature: 0`.
_TEMPERATURE_UNSUPPORTED_MARKERS = ("Unsupported value: 'temperature'", "Only the default")


class LLMParserError(RuntimeError):
    """Raised when the provider call fails or returns an unusable response."""


class ProviderHTTPError(LLMParserError):
    """The provider answered with a non-2xx HTTP status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"LLM HTTP error: {status}")
        self.status = status
        self.message = message


class ParserTimeout(LLMParserError):
    """The overall deadline for the provider call elapsed."""


class NoToolCallReturned(LLMParserError):
    """The provider response carries no (or empty) tool-call arguments."""


@dataclass(frozen=True)
class LLMConfig:
    """Connection settings for the chat-completions provider."""

    api_key: str
    api_base: str = "https://api.openai.com/v1"


class ChatTransport(Protocol):
    """Blocking provider handle: POST a chat-completions payload, return the decoded body."""

    def post(self, payload: dict[str, Any], *, timeout_s: float) -> dict[str, Any]:
        ...


class IntentAiClient(Protocol):
    """Narrow interface the intent service depends on."""

    async def parse_intent_from_text(
            self, *, model: str, text: str, timeout_ms: int
    ) -> StructuredIntent:
        ...


@lru_cache(maxsize=1)
def load_system_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_intent_v1.md"
    return prompt_path.read_text(encoding="utf-8").strip()


def _chat_completions_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/chat/completions"


def _http_error_message(exc: HTTPError) -> str:
    """Best-effort extraction of `error.message` from a provider error body."""

    try:
        body = exc.read()
        decoded = json.loads(body)
    except (OSError, ValueError):
        return ""
    error = decoded.get("error") if isinstance(decoded, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return ""


class ChatCompletionsTransport:
    """`urllib`-based transport for OpenAI-compatible chat completions."""

    def __init__(self, config: LLMConfig) -> None:
        self._url = _chat_completions_url(config.api_base)
        self._headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    def post(self, payload: dict[str, Any], *, timeout_s: float) -> dict[str, Any]:
        req = Request(
            self._url,
            method="POST",
            headers=self._headers,
            data=json.dumps(payload).encode(),
        )

        try:
            with urlopen(req, timeout=timeout_s) as resp:  # noqa: S310 (fixed provider URL)
                body = resp.read()
        except HTTPError as exc:
            raise ProviderHTTPError(exc.code, _http_error_message(exc)) from exc
        except TimeoutError as exc:
            raise ParserTimeout("LLM request timed out") from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise ParserTimeout("LLM request timed out") from exc
            raise LLMParserError("LLM connection error") from exc

        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as exc:
            raise LLMParserError("Unexpected LLM response format") from exc
        if not isinstance(decoded, dict):
            raise LLMParserError("Unexpected LLM response format")
        return decoded


def build_chat_request(model: str, text: str) -> dict[str, Any]:
    """Build the tool-constrained request body (without `temperature`)."""

    return {
        "model": model,
        "messages": [
            {"role": "system", "content": load_system_prompt()},
            {"role": "user", "content": text},
        ],
        "tools": [
            {
                "type": "function",
                "function": {
                    "name": TOOL_NAME,
                    "description": "Parse swap intent text into a strict JSON object.",
                    "parameters": TOOL_PARAMETERS_SCHEMA,
                },
            }
        ],
        "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
    }


def is_temperature_unsupported(exc: ProviderHTTPError) -> bool:
    return exc.status == 400 and all(m in exc.message for m in _TEMPERATURE_UNSUPPORTED_MARKERS)


def extract_tool_arguments(completion: dict[str, Any]) -> str:
    """Return the first tool call's raw argument string."""

    try:
        message = completion["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise NoToolCallReturned("LLM returned no choices") from exc

    tool_calls = message.get("tool_calls") if isinstance(message, dict) else None
    if not tool_calls or not isinstance(tool_calls, list):
        raise NoToolCallReturned("LLM returned no tool calls")

    call = tool_calls[0]
    if not isinstance(call, dict) or call.get("type") != "function":
        raise NoToolCallReturned("LLM returned a non-function tool call")

    function = call.get("function")
    arguments = function.get("arguments") if isinstance(function, dict) else None
    if not isinstance(arguments, str) or not arguments.strip():
        raise NoToolCallReturned("LLM returned no tool arguments")
    return arguments


class OpenAIIntentClient:
    """Tool-calling intent extractor with a single deadline across attempts.

    The provider handle is either injected (tests, custom transports) or created on first use and
    reused for every later call.
    """

    def __init__(
            self,
            config: LLMConfig | None = None,
            *,
            transport: ChatTransport | None = None,
            clock: Callable[[], float] = monotonic,
    ) -> None:
        if config is None and transport is None:
            raise ValueError("either config or transport is required")
        self._config = config
        self._transport = transport
        self._clock = clock

    def _get_transport(self) -> ChatTransport:
        if self._transport is None:
            assert self._config is not None
            self._transport = ChatCompletionsTransport(self._config)
        return self._transport

    async def _post(self, payload: dict[str, Any], remaining_ms: float) -> dict[str, Any]:
        if remaining_ms <= 0:
            raise ParserTimeout("LLM deadline exhausted")

        timeout_s = remaining_ms / 1000
        call = asyncio.to_thread(self._get_transport().post, payload, timeout_s=timeout_s)
        try:
            # On deadline the worker thread is abandoned, not awaited.
            return await asyncio.wait_for(call, timeout=timeout_s)
        except TimeoutError as exc:
            raise ParserTimeout(f"LLM call exceeded {remaining_ms:.0f}ms") from exc

    async def parse_intent_from_text(
            self, *, model: str, text: str, timeout_ms: int
    ) -> StructuredIntent:
        """Ask the model for a structured intent and validate its tool-call arguments.

        Raises:
            LLMParserError: Transport failures, timeouts and missing tool calls.
            json.JSONDecodeError: Tool arguments are not JSON.
            SchemaViolation: Tool arguments do not match the schema.
        """

        request = build_chat_request(model, text)
        started = self._clock()

        def remaining_ms() -> float:
            return timeout_ms - (self._clock() - started) * 1000

        try:
            completion = await self._post({**request, "temperature": 0}, remaining_ms())
        except ProviderHTTPError as exc:
            if not is_temperature_unsupported(exc):
                raise
            logger.info("model rejected temperature=0, retrying with default model=%s", model)
            completion = await self._post(request, remaining_ms())

        return intent_from_json(extract_tool_arguments(completion))
