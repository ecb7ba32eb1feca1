"""Copywriter system prompt and per-request prompt assembly."""

from __future__ import annotations

from typing import Any

NOTIFICATION_SYSTEM_PROMPT = """\
You write push notifications for a habit tracking app. Each notification \
nudges one person about one habit.

## Style

- VERY short: ten words at most
- Direct, like a friend texting
- Emoji in moderation
- No greetings, no sign-offs, straight to the point

## Examples

- "2 days in a row 💧 nice"
- "How's the water going?"
- "Don't lose the streak! Already 12 days"
- "A small step is still a step"

Reply with the notification text ONLY, no JSON, no quotes, no explanations.
"""

# Instruction appended to the user prompt for each text type.
TYPE_INSTRUCTIONS: dict[str, str] = {
    "praise": "Write a praising message. Highlight the achievement.",
    "push": "Write a motivating message. A soft push without guilt.",
    "support": "Write a supportive message. Focus on small steps.",
    "urgent": "Write an urgent reminder. Urgency without panic.",
    "celebration": "Write a celebratory message. Joy and pride.",
    "motivation": "Write a motivating message. Belief in success.",
}

DEFAULT_INSTRUCTION = "Write a simple reminder."


def build_user_prompt(habit: Any, text_type: str, options: dict[str, Any]) -> str:
    """Build the per-notification prompt from habit stats and request options."""
    lines = [
        "Generate a SHORT notification (ten words max) for this habit:",
        "",
        f"Habit: {habit.emoji} {habit.name}",
        f"Streak: {habit.streak} days",
        f"Completion rate: {habit.completion_rate * 100:.0f}%",
        f"Consecutive misses: {habit.consecutive_misses}",
    ]
    context = options.get("context")
    if context:
        lines.append(f"Context: {context}")

    temporal = options.get("temporal_context") or {}
    if temporal.get("time_of_day"):
        lines.append(
            f"Delivered: {temporal['time_of_day']}"
            + (f" on {temporal['day_of_week']}" if temporal.get("day_of_week") else "")
        )

    lines.append("")
    lines.append(TYPE_INSTRUCTIONS.get(text_type, DEFAULT_INSTRUCTION))
    lines.append("")
    tone = options.get("tone") or "friendly"
    lines.append(f"Tone: {tone}. Use the emoji {habit.emoji}. Be brief and natural.")
    return "\n".join(lines)
