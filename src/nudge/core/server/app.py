"""Nudge notification planning MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (fastmcp.json points here)
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from nudge.core.config.settings import Settings, get_settings
from nudge.core.llm.cache import MemoryTextCache
from nudge.core.llm.provider import create_provider
from nudge.core.llm.text_generator import NotificationTextGenerator
from nudge.domains.habits.domain_logic.enrichment import TextGenerator
from nudge.domains.habits.domain_logic.models import PlanningConfig
from nudge.domains.habits.domain_logic.orchestrator import NotificationOrchestrator
from nudge.domains.habits.domain_logic.scheduler import SchedulingService
from nudge.domains.habits.tools.planning_tools import register_planning_tools

logger = logging.getLogger(__name__)

_NO_GENERATOR = object()


def build_text_generator(settings: Settings) -> NotificationTextGenerator | None:
    """Text generator for the configured provider, or None for templates only."""
    if settings.llm_provider == "mock":
        provider_name, api_key, model = "mock", "", ""
    elif settings.llm_provider == "anthropic":
        provider_name = "anthropic"
        api_key, model = settings.anthropic_api_key, settings.anthropic_model
    elif settings.llm_provider == "openai":
        provider_name = "openai"
        api_key, model = settings.openai_api_key, settings.openai_model
    else:  # pragma: no cover
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")

    if provider_name != "mock" and not api_key:
        logger.warning(
            "No API key configured for provider '%s'; notification text uses templates only",
            settings.llm_provider,
        )
        return None

    provider = create_provider(
        provider_name=provider_name,
        api_key=api_key,
        model=model,
        timeout=settings.enrichment_timeout_seconds,
    )
    return NotificationTextGenerator(
        provider,
        cache=MemoryTextCache(
            ttl_seconds=settings.text_cache_ttl_days * 24 * 60 * 60,
            max_size=settings.text_cache_max_entries,
        ),
        timeout_seconds=settings.enrichment_timeout_seconds,
    )


def create_app(
    *,
    text_generator_override: TextGenerator | None | object = _NO_GENERATOR,
) -> FastMCP:
    """Create and configure the Nudge planning MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Builds the planning configuration from settings
    3. Creates the notification text generator (or none, for templates only)
    4. Wires the orchestrator and scheduling service
    5. Registers all tools

    Pass ``text_generator_override=None`` to force template-only text.
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "Nudge Notification Planner",
        instructions=(
            "Habit notification planning server. Given habits with their "
            "completion, snooze and missed-day history, plans which reminders "
            "and motivational notifications to deliver over the next 48 hours."
        ),
    )

    # --- Planning configuration ---
    config = PlanningConfig.from_settings(settings)

    # --- Text generation ---
    if text_generator_override is not _NO_GENERATOR:
        text_generator = text_generator_override
    else:
        text_generator = build_text_generator(settings)
    logger.info(
        "Text enrichment: %s",
        type(text_generator).__name__ if text_generator is not None else "templates only",
    )

    # --- Planning pipeline ---
    orchestrator = NotificationOrchestrator(text_generator=text_generator, config=config)
    scheduler = SchedulingService(orchestrator, config)

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "Nudge Notification Planner",
            "version": "0.1.0",
            "llm_provider": settings.llm_provider,
            "text_enrichment": text_generator is not None,
            "quiet_hours": f"{config.quiet_hours_start:02d}:00-{config.quiet_hours_end:02d}:00",
            "notification_caps": {
                "base": config.base_cap,
                "extended": config.extended_cap,
                "global": config.global_cap,
            },
        }

    register_planning_tools(server, scheduler, orchestrator)
    logger.info("Planning tools registered")

    return server


# Module-level instance for FastMCP discovery (fastmcp.json: "server": "...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
