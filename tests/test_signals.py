from __future__ import annotations

from types import SimpleNamespace

import discord
import pytest

from workbot.sessions import Signal, is_playing, signal_from_presence

GAME = "Satisfactory"


def _activity(name: str, activity_type: discord.ActivityType = discord.ActivityType.playing):
    return SimpleNamespace(name=name, type=activity_type)


def _member(member_id: object, *activities: object) -> SimpleNamespace:
    return SimpleNamespace(id=member_id, activities=list(activities))


def test_playing_configured_game_is_active() -> None:
    member = _member(123, _activity("Spotify", discord.ActivityType.listening), _activity(GAME))

    assert signal_from_presence(member, GAME) == Signal(user_id="123", is_active=True)


@pytest.mark.parametrize(
    "activities",
    [
        [],
        [_activity("Factorio")],
        [_activity(GAME, discord.ActivityType.streaming)],
        [_activity(GAME.lower())],
    ],
)
def test_other_activity_is_inactive(activities: list[object]) -> None:
    assert is_playing(_member(123, *activities), GAME) is False


@pytest.mark.parametrize(
    "payload",
    [
        None,
        SimpleNamespace(id=123),
        SimpleNamespace(id=123, activities=None),
        SimpleNamespace(id=123, activities="Satisfactory"),
        SimpleNamespace(id=123, activities=42),
        SimpleNamespace(id=123, activities=[object()]),
    ],
)
def test_malformed_payload_reads_inactive(payload: object) -> None:
    assert is_playing(payload, GAME) is False


@pytest.mark.parametrize("member_id", [None, True, "abc", 1.5, ""])
def test_payload_without_usable_id_is_rejected(member_id: object) -> None:
    assert signal_from_presence(_member(member_id, _activity(GAME)), GAME) is None


def test_string_id_is_accepted() -> None:
    signal = signal_from_presence(_member(" 456 ", _activity(GAME)), GAME)

    assert signal == Signal(user_id="456", is_active=True)
