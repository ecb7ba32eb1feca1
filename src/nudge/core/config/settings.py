"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Nudge planning server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the planner.
    nudge_host: str = "127.0.0.1"
    nudge_port: int = 8001
    nudge_log_level: str = "info"
    nudge_allow_insecure_bind: bool = False

    # Text generation
    llm_provider: Literal["anthropic", "openai", "mock"] = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    text_cache_ttl_days: int = 7
    text_cache_max_entries: int = 1000

    # Planning
    quiet_hours_start: int = 22
    quiet_hours_end: int = 7
    min_spacing_hours: float = 3.0
    base_notification_cap: int = 4
    extended_notification_cap: int = 15
    global_notification_cap: int = 60
    planning_horizon_hours: int = 48
    missed_lookback_days: int = 30

    # Enrichment fan-out
    enrichment_timeout_seconds: float = 10.0
    enrichment_concurrency: int = 4


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
