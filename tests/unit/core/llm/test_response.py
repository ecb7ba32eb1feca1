"""Tests for generated text cleanup."""

from __future__ import annotations

from nudge.core.llm.response import MAX_BODY_CHARS, sanitize_notification_text


def test_keeps_first_non_empty_line():
    assert sanitize_notification_text("\n\n  First line \nSecond line") == "First line"


def test_strips_labels_and_quotes():
    assert sanitize_notification_text('Text: "Go for a run 🏃"') == "Go for a run 🏃"
    assert sanitize_notification_text("«Almost there»") == "Almost there"


def test_truncates_long_output_on_a_word_boundary():
    text = sanitize_notification_text("word " * 60)
    assert len(text) <= MAX_BODY_CHARS + 1
    assert text.endswith("…")
    assert "  " not in text


def test_nothing_usable():
    assert sanitize_notification_text("") == ""
    assert sanitize_notification_text("   \n  ") == ""
    assert sanitize_notification_text('""') == ""
