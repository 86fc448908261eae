from __future__ import annotations

import pytest

from workbot.formatting import (
    ZERO_WIDTH_SPACE,
    clean_quote_text,
    format_duration,
    render_shift_message,
    sanitize_text,
)


@pytest.mark.parametrize(
    ("milliseconds", "expected"),
    [
        (0, "00:00:00"),
        (999, "00:00:00"),
        (3 * 3_600_000 + 12 * 60_000 + 45_000, "03:12:45"),
        (59_999, "00:00:59"),
        (360_000_000, "100:00:00"),
        (-5_000, "00:00:00"),
    ],
)
def test_format_duration(milliseconds: int, expected: str) -> None:
    assert format_duration(milliseconds) == expected


def test_sanitize_escapes_markdown() -> None:
    assert sanitize_text("*bold* _it_ `code` ~x~ |s|") == r"\*bold\* \_it\_ \`code\` \~x\~ \|s\|"


def test_sanitize_neutralizes_broadcast_mentions() -> None:
    cleaned = sanitize_text("hello @everyone and @here")

    assert "@everyone" not in cleaned
    assert f"@{ZERO_WIDTH_SPACE}everyone" in cleaned
    assert f"@{ZERO_WIDTH_SPACE}here" in cleaned


def test_sanitize_replaces_reference_syntax() -> None:
    cleaned = sanitize_text("<@123> <@!456> <@&789> <#42> <:fic_sit:99> <a:dance:77>")

    assert "<@" not in cleaned
    assert "<#" not in cleaned
    assert cleaned.count(f"@{ZERO_WIDTH_SPACE}user") == 3
    assert f"#{ZERO_WIDTH_SPACE}channel" in cleaned
    assert cleaned.count(":emoji:") == 2


def test_clean_quote_text_normalizes() -> None:
    raw = '  "Keep\n   building,\tPioneer!"  '

    assert clean_quote_text(raw) == "Keep building, Pioneer!"
    assert len(clean_quote_text("x" * 500)) == 200


def test_render_with_role_label() -> None:
    message = render_shift_message("Alice", 11_565_000, "Keep building", "Pioneer")

    assert message == '>>> Alice "Pioneer" has ended their 03:12:45 shift!\n*Keep building*'


def test_render_without_role_label() -> None:
    message = render_shift_message("Bob", 60_000, "Keep building")

    assert message == ">>> Bob has ended their 00:01:00 shift!\n*Keep building*"


def test_blank_role_label_uses_plain_template() -> None:
    message = render_shift_message("Bob", 60_000, "Keep building", "   ")

    assert '"' not in message


def test_render_sanitizes_interpolated_values() -> None:
    message = render_shift_message("*Eve* @everyone", 1_000, "Ping <@123>", "<#5>")

    assert message.startswith(">>> \\*Eve\\*")
    assert "@everyone" not in message
    assert "<@123>" not in message
    assert message.endswith("*")
