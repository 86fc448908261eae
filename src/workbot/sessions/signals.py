"""Validation of untyped presence payloads into strict signals."""

from __future__ import annotations

from typing import Any

import discord

from .models import Signal


def _extract_user_id(payload: Any) -> str | None:
    raw = getattr(payload, "id", None)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return raw.strip()
    return None


def is_playing(payload: Any, activity_name: str) -> bool:
    """Return True when the payload shows the configured game being played.

    Anything missing or malformed reads as not playing.
    """

    activities = getattr(payload, "activities", None)
    if activities is None or isinstance(activities, (str, bytes)):
        return False
    try:
        items = list(activities)
    except TypeError:
        return False
    return any(
        getattr(activity, "type", None) == discord.ActivityType.playing
        and getattr(activity, "name", None) == activity_name
        for activity in items
    )


def signal_from_presence(payload: Any, activity_name: str) -> Signal | None:
    """Convert a presence payload (e.g. a ``discord.Member``) into a ``Signal``.

    Payloads without a usable identifier are rejected with ``None``.
    """

    user_id = _extract_user_id(payload)
    if user_id is None:
        return None
    return Signal(user_id=user_id, is_active=is_playing(payload, activity_name))


__all__ = ["is_playing", "signal_from_presence"]
