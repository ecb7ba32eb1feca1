"""Text enrichment fan-out for planned notifications.

Each notification with a text request is enriched independently under a
semaphore; ``asyncio.gather`` is the join barrier, so callers only ever see a
complete batch. A failure or timeout leaves that notification's template text;
the generator is asked not to substitute canned copy, so ``enriched_with_ai``
marks generated (or cached generated) text only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Protocol

from nudge.domains.habits.domain_logic.models import Habit, Notification, PlanningContext

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate_text(
        self,
        habit: Any,
        text_type: str,
        options: dict[str, Any] | None = None,
        *,
        allow_fallback: bool = True,
    ) -> str | None: ...


def text_options(notification: Notification, context: PlanningContext) -> dict[str, Any]:
    """Options passed to the generator for one notification."""
    request = notification.text_request
    tone = request.tone if request and request.tone else context.user.preferred_tone
    options: dict[str, Any] = {
        "tone": tone,
        "temporal_context": {
            "time_of_day": context.temporal.time_of_day,
            "day_of_week": context.temporal.day_of_week,
        },
    }
    if request and request.context:
        options["context"] = request.context
    return options


async def enrich_one(
    notification: Notification,
    habit: Habit,
    context: PlanningContext,
    generator: TextGenerator,
    *,
    timeout: float = 10.0,
) -> Notification:
    """Return ``notification`` with generated body, or unchanged on any failure."""
    request = notification.text_request
    if request is None:
        return notification

    try:
        text = await asyncio.wait_for(
            generator.generate_text(
                habit,
                request.text_type,
                text_options(notification, context),
                allow_fallback=False,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Enrichment timed out after %.1fs for %s; keeping template text",
            timeout,
            notification.id,
        )
        return notification
    except Exception as exc:
        logger.warning("Enrichment failed for %s; keeping template text: %s", notification.id, exc)
        return notification

    if not text or not text.strip():
        return notification
    return replace(notification, body=text.strip(), enriched_with_ai=True)


async def enrich_notifications(
    notifications: Sequence[Notification],
    habit: Habit,
    context: PlanningContext,
    generator: TextGenerator | None,
    *,
    timeout: float = 10.0,
    concurrency: int = 4,
) -> list[Notification]:
    """Enrich every notification concurrently; order is preserved."""
    if generator is None or not notifications:
        return list(notifications)

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def bounded(notification: Notification) -> Notification:
        async with semaphore:
            return await enrich_one(notification, habit, context, generator, timeout=timeout)

    enriched = await asyncio.gather(*(bounded(n) for n in notifications))
    logger.debug(
        "Enriched %d/%d notifications for habit %s",
        sum(1 for n in enriched if n.enriched_with_ai),
        len(enriched),
        habit.id,
    )
    return list(enriched)
