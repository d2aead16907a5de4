"""HTTP service entrypoint."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from intent_coordinator.api.errors import register_error_handlers
from intent_coordinator.api.routes import router
from intent_coordinator.app import App, create_app
from intent_coordinator.config.logging import configure_logging
from intent_coordinator.config.settings import load_settings

logger = logging.getLogger(__name__)


def create_api(container: App) -> FastAPI:
    """Build the FastAPI application around an already-wired container."""

    api = FastAPI(title="Swap Intent Coordinator", version="0.1.0")
    api.state.container = container

    origin = container.settings.cors_origin.strip()
    api.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if origin in ("", "*") else [origin],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_error_handlers(api)
    api.include_router(router)
    return api


def main() -> None:
    """Run the HTTP service with uvicorn."""

    settings = load_settings()
    configure_logging(settings.log_level)

    container = create_app(settings)
    logger.info(
        "starting networks=%s llm_enabled=%s",
        ",".join(settings.networks),
        settings.llm_enabled,
    )
    uvicorn.run(create_api(container), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
