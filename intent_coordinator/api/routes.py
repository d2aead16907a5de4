"""HTTP routes.

All routes except `/health` require a `network` query parameter naming one of the configured
networks.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from intent_coordinator.api.errors import ApiError
from intent_coordinator.app import App
from intent_coordinator.intent.errors import IntentError, ParserUnavailable
from intent_coordinator.tokens.registry import RegistryUnavailable, normalize_network

logger = logging.getLogger(__name__)

router = APIRouter()


def get_app(request: Request) -> App:
    return request.app.state.container


def require_network(
        network: str | None = Query(default=None),
        app: App = Depends(get_app),
) -> str:
    """Validate the `network` query parameter against the configured networks."""

    expected = list(app.settings.networks)
    if network is None or not network.strip():
        raise ApiError(400, "Invalid network parameter.", "INVALID_NETWORK", {"expected": expected})

    normalized = normalize_network(network)
    if normalized not in expected:
        raise ApiError(400, "Invalid network parameter.", "INVALID_NETWORK", {"expected": expected})
    return normalized


def _caller_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise ApiError(400, "Bad request.", "BAD_REQUEST") from exc


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/tokens")
async def list_tokens(
        network: str = Depends(require_network),
        app: App = Depends(get_app),
) -> JSONResponse:
    try:
        tokens = await app.registry.get_tokens(network)
    except RegistryUnavailable as exc:
        logger.warning("token registry unavailable network=%s error=%s", network, exc)
        raise ApiError(500, "Token registry unavailable.", "TOKEN_REGISTRY_UNAVAILABLE") from exc

    return JSONResponse(
        content=[t.model_dump(by_alias=True, exclude_none=True) for t in tokens],
    )


@router.post("/api/intent/free-text")
async def parse_intent_free_text(
        request: Request,
        network: str = Depends(require_network),
        idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
        app: App = Depends(get_app),
) -> JSONResponse:
    """Parse `{"text": ...}` into a deterministic swap intent."""

    body = await _read_json_body(request)
    raw_text = body.get("text") if isinstance(body, dict) else None

    try:
        response = await app.intents.parse_free_text(
            network=network,
            raw_text=raw_text,
            caller=_caller_identity(request),
            idempotency_key=idempotency_key,
        )
    except IntentError:
        raise
    except Exception as exc:
        # Handler boundary: unexpected failures surface as a generic unavailability.
        logger.exception("free-text parsing failed network=%s", network)
        raise ParserUnavailable("unexpected pipeline failure") from exc

    return JSONResponse(content=response.to_payload())
