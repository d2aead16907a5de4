"""Token catalogs loaded from disk.

Catalogs are static JSON arrays stored as `<config_dir>/tokens.<network>.json`. Each network is
loaded lazily on first use and cached for the lifetime of the process; a restart is required to pick
up catalog changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from intent_coordinator.tokens.models import TokenEntry

logger = logging.getLogger(__name__)

# Catalogs shipped with the package; used unless TOKENS_CONFIG_DIR points elsewhere.
BUNDLED_CATALOG_DIR = Path(__file__).resolve().parent / "catalogs"


class RegistryUnavailable(RuntimeError):
    """Raised when a network catalog cannot be read or contains an invalid entry."""


def normalize_network(network: str) -> str:
    return network.strip().lower()


def tokens_file_path(config_dir: Path, network: str) -> Path:
    """Return the catalog path for a (normalized) network name."""

    return config_dir / f"tokens.{normalize_network(network)}.json"


def parse_tokens(raw: str) -> list[TokenEntry]:
    """Decode and validate a catalog document.

    Raises:
        RegistryUnavailable: If the document is not a JSON array of valid token entries.
    """

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RegistryUnavailable("token catalog is not valid JSON") from exc

    if not isinstance(decoded, list):
        raise RegistryUnavailable("token catalog must be a JSON array")

    tokens: list[TokenEntry] = []
    for index, entry in enumerate(decoded):
        if not isinstance(entry, dict):
            raise RegistryUnavailable(f"token entry #{index} must be an object")
        try:
            tokens.append(TokenEntry.model_validate(entry))
        except ValidationError as exc:
            raise RegistryUnavailable(f"token entry #{index} is invalid") from exc
    return tokens


def load_tokens_from_disk(config_dir: Path, network: str) -> list[TokenEntry]:
    """Read and validate the catalog for `network` (blocking)."""

    path = tokens_file_path(config_dir, network)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RegistryUnavailable(f"token catalog not readable for network={network}") from exc
    return parse_tokens(raw)


def pick_by_symbol(tokens: Iterable[TokenEntry], symbol: str) -> TokenEntry | None:
    """Return the first token whose symbol matches case-insensitively, if any."""

    wanted = symbol.upper()
    for token in tokens:
        if token.symbol.upper() == wanted:
            return token
    return None


class TokenRegistry:
    """In-memory, per-network cache in front of the on-disk catalogs.

    The cache is only mutated from the event loop thread; the file read itself runs in a worker
    thread. Under true multi-threaded access callers must add their own locking.
    """

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._cache: dict[str, tuple[TokenEntry, ...]] = {}

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    async def get_tokens(self, network: str) -> tuple[TokenEntry, ...]:
        """Return the immutable token list for a network, loading it on first use.

        Raises:
            RegistryUnavailable: If the catalog cannot be loaded or validated.
        """

        key = normalize_network(network)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        loaded = await asyncio.to_thread(load_tokens_from_disk, self._config_dir, key)
        tokens = tuple(loaded)
        self._cache[key] = tokens
        logger.info("token registry loaded network=%s tokens=%d", key, len(tokens))
        return tokens
