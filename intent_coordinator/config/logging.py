"""Logging configuration for the coordinator service."""

from __future__ import annotations

import logging
import os


def configure_logging(level: str | None = None) -> None:
    """Configure Python logging for the process.

    Logs are for internal diagnostics only; provider errors and rejection reasons written here must
    never be sent back to API callers.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Request lines are noisy and may contain query strings; keep them at WARNING by default.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
