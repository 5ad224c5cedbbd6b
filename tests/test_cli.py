from pathlib import Path

import pytest
from typer.testing import CliRunner

import tootsnap.cli as cli
from tootsnap.errors import ExportError
from tootsnap.models import ExportReport
from tootsnap.storage import FileSettingsStore

runner = CliRunner()


def test_settings_set_show_and_reset_round_trip(tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["settings", "set", "--link-color", "#00ff00", "--hide-date", "--image-style", "fan", "--config-dir", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert "link_color: #00FF00" in result.output

    result = runner.invoke(cli.app, ["settings", "show", "--config-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "show_date: False" in result.output
    assert "image_style: fan" in result.output

    result = runner.invoke(cli.app, ["settings", "reset", "--config-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "link_color: #007AFF" in result.output
    assert (tmp_path / "settings.json").is_file()


def test_settings_set_rejects_invalid_values(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["settings", "set", "--text-color", "white", "--config-dir", str(tmp_path)])
    assert result.exit_code == 2

    result = runner.invoke(cli.app, ["settings", "set", "--config-dir", str(tmp_path)])
    assert result.exit_code == 2
    assert not (tmp_path / "settings.json").exists()


def test_export_rejects_unparseable_link(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["export", "https://example.com/about", "--output", str(tmp_path / "x.svg")])

    assert result.exit_code == 2


def test_export_prints_report(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_export(url, output, **kwargs):
        calls.append((url, output, kwargs))
        return ExportReport(
            url=url,
            post_id="1",
            output=output,
            posts_included=3,
            images_loaded=5,
            share_caption=url,
        )

    monkeypatch.setattr(cli, "export_post", fake_export)
    output = tmp_path / "post.svg"

    result = runner.invoke(
        cli.app,
        ["export", "https://example.com/@user/1", "--output", str(output), "--include-replies", "--config-dir", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    assert "Exported 3 post(s) with 5 image(s)." in result.output
    assert "Caption: https://example.com/@user/1" in result.output
    assert calls[0][2]["include_replies"] is True
    assert calls[0][2]["include_ancestors"] is False


def test_export_failure_exits_with_one(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_export(url, output, **kwargs):
        raise ExportError("This server requires you to log in before viewing posts.")

    monkeypatch.setattr(cli, "export_post", failing_export)

    result = runner.invoke(cli.app, ["export", "https://example.com/@user/1", "--output", str(tmp_path / "x.svg")])

    assert result.exit_code == 1


def test_logout_clears_stored_token(tmp_path: Path) -> None:
    FileSettingsStore(tmp_path).write_blob("token", b"secret")

    result = runner.invoke(cli.app, ["logout", "--config-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Logged out." in result.output
    assert FileSettingsStore(tmp_path).read_blob("token") == b""
