"""Notification text generator: best-effort LLM copy with cache and fallback.

The planning core treats this collaborator as optional enrichment. By default
every call returns a usable string (generated, cached or a canned phrase);
with ``allow_fallback=False`` a failed generation returns None instead.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
from pathlib import Path
from typing import Any, Protocol

import yaml

from nudge.core.llm.cache import MemoryTextCache, TextCache
from nudge.core.llm.provider import LLMProvider, ProviderResponse
from nudge.core.llm.response import sanitize_notification_text
from nudge.core.llm.system_prompt import NOTIFICATION_SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)

_FALLBACK_PHRASES_PATH = Path(__file__).resolve().parent / "fallback_phrases.yaml"


class HabitCopySubject(Protocol):
    """The habit fields the copywriter needs."""

    name: str
    emoji: str
    streak: int
    completion_rate: float
    consecutive_misses: int


def load_fallback_phrases(path: str | Path = _FALLBACK_PHRASES_PATH) -> dict[str, list[str]]:
    """Load the canned phrase table from YAML."""
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    phrases = {
        str(key): [str(p) for p in values]
        for key, values in data.items()
        if isinstance(values, list) and values
    }
    if "reminder" not in phrases:
        raise ValueError(f"Fallback phrase table {path} has no 'reminder' entries")
    return phrases


def streak_bucket(streak: int) -> str:
    if streak <= 0:
        return "0"
    if streak <= 3:
        return "1-3"
    if streak <= 7:
        return "4-7"
    if streak <= 14:
        return "8-14"
    return "15+"


def rate_bucket(rate: float) -> str:
    if rate < 0.3:
        return "low"
    if rate < 0.7:
        return "medium"
    return "high"


def cache_key(habit: HabitCopySubject, text_type: str, options: dict[str, Any]) -> str:
    """Coarse fingerprint so similar habits in similar states share copy."""
    data = "-".join([
        habit.name,
        text_type,
        streak_bucket(habit.streak),
        rate_bucket(habit.completion_rate),
        str(options.get("tone") or ""),
    ])
    return hashlib.md5(data.encode("utf-8")).hexdigest()


class NotificationTextGenerator:
    """Generates short notification bodies through an LLM provider.

    Usage::

        generator = NotificationTextGenerator(create_provider("mock"))
        body = await generator.generate_text(habit, "reminder", {"tone": "friendly"})
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        cache: TextCache | None = None,
        timeout_seconds: float = 10.0,
        fallback_phrases: dict[str, list[str]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.provider = provider
        self.cache: TextCache = cache if cache is not None else MemoryTextCache()
        self.timeout_seconds = timeout_seconds
        self.fallback_phrases = fallback_phrases or load_fallback_phrases()
        self._rng = rng or random.Random()

    async def generate_text(
        self,
        habit: HabitCopySubject,
        text_type: str,
        options: dict[str, Any] | None = None,
        *,
        allow_fallback: bool = True,
    ) -> str | None:
        """Return notification copy for ``habit``; never raises.

        When the provider fails, times out or returns nothing, a canned phrase
        is returned, or None if ``allow_fallback`` is False.
        """
        options = options or {}
        key = cache_key(habit, text_type, options)

        cached = self.cache.get(key)
        if cached:
            logger.debug("Text cache hit for %s (%s)", habit.name, text_type)
            return cached

        try:
            response: ProviderResponse = await asyncio.wait_for(
                self.provider.generate(
                    system_message=NOTIFICATION_SYSTEM_PROMPT,
                    user_message=build_user_prompt(habit, text_type, options),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Text generation timed out after %.1fs for %s (%s)",
                self.timeout_seconds,
                habit.name,
                text_type,
            )
            return self._fallback(text_type, allow_fallback)
        except Exception as exc:
            logger.warning(
                "Text generation failed for %s (%s): %s", habit.name, text_type, exc
            )
            return self._fallback(text_type, allow_fallback)

        text = sanitize_notification_text(response.content)
        if not text:
            logger.warning("Provider returned empty text for %s (%s)", habit.name, text_type)
            return self._fallback(text_type, allow_fallback)

        logger.info(
            "Generated %s text for %s: model=%s, tokens=%d+%d, latency=%.0fms",
            text_type,
            habit.name,
            response.model,
            response.input_tokens,
            response.output_tokens,
            response.latency_ms,
        )
        self.cache.put(key, text)
        return text

    def _fallback(self, text_type: str, allow_fallback: bool) -> str | None:
        return self.fallback_text(text_type) if allow_fallback else None

    def fallback_text(self, text_type: str) -> str:
        """Pick a canned phrase for ``text_type`` (unknown types use reminders)."""
        phrases = self.fallback_phrases.get(text_type) or self.fallback_phrases["reminder"]
        return self._rng.choice(phrases)
