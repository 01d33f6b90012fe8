"""Fallback values used when generative content is unavailable."""

from __future__ import annotations

PLACEHOLDER_VIDEO = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
PLACEHOLDER_REMEDIAL_TEXT = (
    "Let's slow down and revisit the key ideas from the last few steps. "
    "Re-read each one, note the single idea it is built around, then try "
    "the mastery check again."
)
PLACEHOLDER_CHAT_REPLY = "I'm listening. Tell me more."
CONTENT_ERROR_REASON = "Lesson content could not be loaded. Try again."
