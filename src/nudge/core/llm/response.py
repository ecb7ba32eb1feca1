"""Cleanup and validation of generated notification copy."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# Push notification bodies get truncated by the OS well before this.
MAX_BODY_CHARS = 120

_WRAPPING_QUOTES = "\"'«»“”„`"
_LABEL_PREFIX = re.compile(r"^(notification|text|message)\s*:\s*", re.IGNORECASE)


def sanitize_notification_text(content: str) -> str:
    """Normalize raw model output into a single-line notification body.

    Returns an empty string when nothing usable remains; callers treat that
    as a generation failure.
    """
    if not content:
        return ""

    # Models occasionally answer with several candidate lines; keep the first.
    lines = [line.strip() for line in content.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    text = _LABEL_PREFIX.sub("", lines[0])
    text = text.strip().strip(_WRAPPING_QUOTES).strip()

    if len(text) > MAX_BODY_CHARS:
        cut = text[:MAX_BODY_CHARS].rsplit(" ", 1)[0]
        logger.debug("Truncated generated text from %d to %d chars", len(text), len(cut))
        text = cut.rstrip(",;:-") + "…"
    return text
