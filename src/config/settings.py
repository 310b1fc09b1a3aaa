# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: LLM routing,
agent supervision defaults, the dual-timeout guard, cache, fact store,
credits ledger and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "anthropic"
    llm_default_model: str = "claude-sonnet-4-20250514"
    llm_default_temperature: float = 0.2
    llm_max_tokens_per_agent: int = 4096

    # Provider API keys
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # Per-complexity LLM assignment ("provider:model")
    llm_complexity_simple: str = "anthropic:claude-haiku-4-5-20251001"
    llm_complexity_medium: str = ""
    llm_complexity_complex: str = ""

    # Per-agent LLM assignment (highest priority), e.g. {"memo-generator": "openai:gpt-4o"}
    llm_agent_overrides: dict[str, str] = {}

    # === Agent supervision ===
    agent_timeout_ms: int = 50_000
    agent_max_retries: int = 2
    agent_retry_base_delay_s: float = 1.0
    agent_retry_backoff_factor: float = 2.0

    # Caller-side guard for standalone single-agent runs; must exceed agent_timeout_ms
    outer_guard_timeout_ms: int = 55_000

    # === Analysis ===
    analysis_max_cost_usd: float | None = None
    analysis_cache_ttl_s: int = 24 * 3600
    # How long an interrupted run stays resumable
    checkpoint_ttl_s: int = 24 * 3600

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_default_ttl_s: int = 300
    cache_max_entries: int = 1000
    cache_redis_url: str = ""
    cache_key_prefix: str = "dealscope:"

    # === Fact store ===
    fact_store_backend: Literal["memory", "sqlite"] = "memory"
    fact_store_path: Path = Path("~/.dealscope/facts.db")

    # === Credits ===
    credits_db_path: Path = Path("~/.dealscope/credits.db")
    credits_monthly_allocation: int = 10

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("agent_timeout_ms", "outer_guard_timeout_ms")
    @classmethod
    def validate_positive_timeout(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("agent_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("agent_max_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.agent_timeout_ms >= self.outer_guard_timeout_ms:
            errors.append(
                "AGENT_TIMEOUT_MS must be strictly less than OUTER_GUARD_TIMEOUT_MS"
            )

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if self.fact_store_backend == "sqlite" and not str(self.fact_store_path):
            errors.append("FACT_STORE_BACKEND=sqlite requires FACT_STORE_PATH")

        if self.cache_max_entries <= 0:
            errors.append("CACHE_MAX_ENTRIES must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
