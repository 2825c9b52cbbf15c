from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from crossbot.surfaces.cli.cli import app


@pytest.fixture(autouse=True)
def _no_platform_tokens(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CROSSBOT_DISCORD_BOT_TOKEN",
        "CROSSBOT_SLACK_BOT_TOKEN",
        "CROSSBOT_SLACK_SIGNING_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "crossbot.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.stdout.startswith("crossbot ")


def test_platform_subcommands_are_registered() -> None:
    runner = CliRunner()

    discord = runner.invoke(app, ["discord", "--help"])
    slack = runner.invoke(app, ["slack", "--help"])

    assert discord.exit_code == 0 and "start" in discord.stdout
    assert slack.exit_code == 0 and "start" in slack.stdout


def test_check_reports_ok_for_valid_config(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        "command_prefix: '?'\ndefault_locale: ru\ndiscord:\n  enabled: false\n",
    )

    result = CliRunner().invoke(app, ["check", "--path", str(tmp_path)])

    assert result.exit_code == 0
    assert "discord: disabled" in result.stdout
    assert "slack: disabled" in result.stdout
    assert "commands: 8; locales: en, ru" in result.stdout
    assert result.stdout.strip().endswith("ok")


def test_check_collects_problems(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path, "default_locale: de\nslack:\n  port: 0\n"
    )

    result = CliRunner().invoke(app, ["check", "--path", str(config_path)])

    assert result.exit_code == 1
    assert "slack: slack.port must be an integer between 1 and 65535" in result.output
    assert "default_locale 'de' has no locale table" in result.output


def test_invalid_yaml_exits_with_message(tmp_path: Path) -> None:
    _write_config(tmp_path, "command_prefix: [unclosed\n")

    result = CliRunner().invoke(app, ["check", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "Invalid YAML" in result.output


def test_start_requires_an_enabled_platform(tmp_path: Path) -> None:
    _write_config(tmp_path, "discord:\n  enabled: false\n")

    result = CliRunner().invoke(app, ["start", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "No platform enabled" in result.output


def test_start_reports_missing_token(tmp_path: Path) -> None:
    _write_config(tmp_path, "discord:\n  enabled: true\n")

    result = CliRunner().invoke(app, ["discord", "start", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "CROSSBOT_DISCORD_BOT_TOKEN" in result.output


def test_platform_start_refuses_disabled_platform(tmp_path: Path) -> None:
    _write_config(tmp_path, "slack:\n  enabled: false\n")

    result = CliRunner().invoke(app, ["slack", "start", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "slack is disabled" in result.output
