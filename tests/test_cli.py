from __future__ import annotations

import argparse
import importlib.util
import json
from pathlib import Path

import pytest

from workbot.quotes import FakeQuoteBackend, QuoteProvider, RetryPolicy

ALICE = "111111111111111111"


def load_diag(name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "workbot_diag.py"
    spec = importlib.util.spec_from_file_location(name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


@pytest.fixture
def bot_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    monkeypatch.chdir(tmp_path)
    for name in ("WORKER_MAPPING", "ROLE_LABELS_PATH", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "discord-secret")
    monkeypatch.setenv("CHANNEL_ID", "987654321098765432")
    monkeypatch.setenv("GEMINI_API_KEY", "gemini-secret")
    return monkeypatch


def test_config_prints_redacted_settings(bot_env, capsys) -> None:
    diag = load_diag("workbot_diag_config")

    diag.cmd_config(argparse.Namespace())

    out = capsys.readouterr().out
    payload = json.loads(out)
    assert payload["channel_id"] == "987654321098765432"
    assert "discord-secret" not in out
    assert "gemini-secret" not in out


def test_invalid_config_exits_with_error(bot_env, capsys) -> None:
    bot_env.setenv("CHANNEL_ID", "not-a-channel")
    diag = load_diag("workbot_diag_invalid")

    with pytest.raises(SystemExit) as excinfo:
        diag.cmd_config(argparse.Namespace())

    assert excinfo.value.code == 1
    assert "Configuration invalid" in capsys.readouterr().out


def test_roles_merges_sources(bot_env, tmp_path: Path, capsys) -> None:
    (tmp_path / "labels.yaml").write_text(f'"{ALICE}": Pioneer\n', encoding="utf-8")
    bot_env.setenv("ROLE_LABELS_PATH", str(tmp_path / "labels.yaml"))
    bot_env.setenv("WORKER_MAPPING", '{"222222222222222222": "Engineer"}')
    diag = load_diag("workbot_diag_roles")

    diag.cmd_roles(argparse.Namespace())

    assert json.loads(capsys.readouterr().out) == {
        ALICE: "Pioneer",
        "222222222222222222": "Engineer",
    }


def test_preview_renders_message(capsys) -> None:
    diag = load_diag("workbot_diag_preview")

    diag.main(["preview", "--name", "Alice", "--role", "Pioneer", "--duration-ms", "11565000", "--quote", "Grow"])

    assert capsys.readouterr().out == '>>> Alice "Pioneer" has ended their 03:12:45 shift!\n*Grow*\n'


def test_quote_falls_back_when_backend_fails(bot_env, monkeypatch, capsys) -> None:
    diag = load_diag("workbot_diag_quote")
    monkeypatch.setattr(
        diag,
        "build_provider",
        lambda settings: QuoteProvider(
            FakeQuoteBackend([RuntimeError("quota")]),
            retry_policy=RetryPolicy(max_attempts=1),
        ),
    )

    diag.cmd_quote(argparse.Namespace())

    payload = json.loads(capsys.readouterr().out)
    assert payload["is_fallback"] is True
    assert payload["text"]
