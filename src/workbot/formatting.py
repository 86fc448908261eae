"""Text helpers for shift announcements."""

from __future__ import annotations

import re

ZERO_WIDTH_SPACE = "\u200b"
QUOTE_MAX_LENGTH = 200

_USER_MENTION = re.compile(r"<@[!&]?\d+>")
_CHANNEL_MENTION = re.compile(r"<#\d+>")
_CUSTOM_EMOJI = re.compile(r"<a?:[A-Za-z0-9_]+:\d+>")
_MARKDOWN = re.compile(r"([*_`~|\\])")
_BROADCAST = re.compile(r"@(everyone|here)")
_WHITESPACE = re.compile(r"\s+")

_TEMPLATE_WITH_ROLE = '>>> {name} "{role}" has ended their {duration} shift!\n*{quote}*'
_TEMPLATE = ">>> {name} has ended their {duration} shift!\n*{quote}*"


def format_duration(milliseconds: int | float) -> str:
    """Format a millisecond duration as ``hh:mm:ss``.

    Hours are zero padded to two digits but never clamped, so a 100 hour
    session renders as ``100:00:00``.
    """

    total_seconds = max(int(milliseconds // 1000), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def sanitize_text(text: str) -> str:
    """Neutralize Discord markup and mentions in user supplied text."""

    cleaned = _USER_MENTION.sub(f"@{ZERO_WIDTH_SPACE}user", text)
    cleaned = _CHANNEL_MENTION.sub(f"#{ZERO_WIDTH_SPACE}channel", cleaned)
    cleaned = _CUSTOM_EMOJI.sub(":emoji:", cleaned)
    cleaned = _MARKDOWN.sub(r"\\\1", cleaned)
    cleaned = _BROADCAST.sub(f"@{ZERO_WIDTH_SPACE}\\1", cleaned)
    return cleaned.strip()


def clean_quote_text(text: str, *, limit: int = QUOTE_MAX_LENGTH) -> str:
    """Normalize raw generated text into a single short line."""

    stripped = text.replace('"', "").replace("'", "")
    return _WHITESPACE.sub(" ", stripped).strip()[:limit]


def render_shift_message(
    display_name: str,
    duration_ms: int | float,
    quote_text: str,
    role_label: str | None = None,
) -> str:
    """Build the announcement posted when a shift ends.

    Every interpolated value is sanitized; the template itself supplies the
    block quote and italics markup.
    """

    values = {
        "name": sanitize_text(display_name),
        "duration": format_duration(duration_ms),
        "quote": sanitize_text(quote_text),
    }
    if role_label and role_label.strip():
        return _TEMPLATE_WITH_ROLE.format(role=sanitize_text(role_label), **values)
    return _TEMPLATE.format(**values)


__all__ = [
    "clean_quote_text",
    "format_duration",
    "render_shift_message",
    "sanitize_text",
]
