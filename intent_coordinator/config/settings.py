"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file). Every numeric knob that gates the intent pipeline is range
checked at startup; the core receives the validated values explicitly and never reads the
environment itself.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from intent_coordinator.tokens.registry import BUNDLED_CATALOG_DIR


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")
    networks_supported: str = Field(alias="NETWORKS_SUPPORTED")
    cors_origin: str = Field(default="*", alias="CORS_ORIGIN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    max_text_len: int = Field(default=500, gt=0, alias="MAX_TEXT_LEN")
    default_expiry_minutes: int = Field(default=15, ge=1, le=1440, alias="DEFAULT_EXPIRY_MINUTES")
    default_max_slippage_bps: int = Field(
        default=100, ge=0, le=5000, alias="DEFAULT_MAX_SLIPPAGE_BPS"
    )
    parser_timeout_ms: int = Field(default=10_000, gt=0, alias="PARSER_TIMEOUT_MS")
    parser_idempotency_ttl_ms: int = Field(
        default=10 * 60_000, gt=0, alias="PARSER_IDEMPOTENCY_TTL_MS"
    )
    parser_rate_limit_per_minute: int = Field(
        default=30, gt=0, alias="PARSER_RATE_LIMIT_PER_MINUTE"
    )

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str | None = Field(default=None, alias="OPENAI_MODEL")
    openai_api_base: str = Field(default="https://api.openai.com/v1", alias="OPENAI_API_BASE")

    tokens_config_dir: Path = Field(default=BUNDLED_CATALOG_DIR, alias="TOKENS_CONFIG_DIR")

    @field_validator("networks_supported")
    @classmethod
    def validate_networks(cls, value: str) -> str:
        """Normalize the comma-separated network list (lower-cased, trimmed, deduplicated)."""

        networks: list[str] = []
        for item in value.split(","):
            name = item.strip().lower()
            if name and name not in networks:
                networks.append(name)
        if not networks:
            raise ValueError("NETWORKS_SUPPORTED must list at least one network")
        return ",".join(networks)

    @field_validator("openai_api_key", "openai_model")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("host")
    @classmethod
    def default_blank_host(cls, value: str) -> str:
        return value.strip() or "0.0.0.0"

    @property
    def networks(self) -> tuple[str, ...]:
        return tuple(self.networks_supported.split(","))

    @property
    def llm_enabled(self) -> bool:
        return self.openai_api_key is not None and self.openai_model is not None


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
