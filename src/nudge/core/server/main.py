"""Nudge server entry point: ``python -m nudge.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from nudge.core.config.settings import Settings, get_settings
from nudge.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_host(settings: Settings) -> None:
    """Refuse non-loopback binds unless explicitly allowed."""
    if settings.nudge_allow_insecure_bind or _is_loopback_host(settings.nudge_host):
        return
    raise RuntimeError(
        f"Refusing to bind the planning server to {settings.nudge_host!r}: it has no auth "
        "layer and receives users' habit history. "
        "Set NUDGE_ALLOW_INSECURE_BIND=true to override (unsafe)."
    )


def log_planning_profile(settings: Settings) -> None:
    """One startup line with the policy every schedule is planned under."""
    logger.info(
        "Planning with text provider=%s, quiet hours %02d:00-%02d:00, "
        "caps %d/%d per habit and %d per batch, %dh horizon, %.1fh spacing",
        settings.llm_provider,
        settings.quiet_hours_start,
        settings.quiet_hours_end,
        settings.base_notification_cap,
        settings.extended_notification_cap,
        settings.global_notification_cap,
        settings.planning_horizon_hours,
        settings.min_spacing_hours,
    )


def run() -> None:
    """Start the Nudge MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.nudge_log_level.upper(), logging.INFO))

    check_bind_host(settings)
    mcp = create_app()
    log_planning_profile(settings)
    logger.info(
        "Starting Nudge notification planner on %s:%d",
        settings.nudge_host,
        settings.nudge_port,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.nudge_host,
        port=settings.nudge_port,
    )


if __name__ == "__main__":
    run()
