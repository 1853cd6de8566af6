"""Tests for the stay-fresh-setup plugin installer."""

import json
import subprocess
from pathlib import Path

import pytest

from stay_fresh_lsp_proxy import setup_cli


class FakeClaude:
    """Records commands and fails those whose prefix maps to an error message."""

    def __init__(self, failures: dict[tuple[str, ...], str] | None = None):
        self.failures = failures or {}
        self.commands: list[list[str]] = []

    def __call__(self, command, capture_output, text):
        self.commands.append(command)
        for prefix, stderr in self.failures.items():
            if tuple(command[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(command, 1, stdout="", stderr=stderr)
        return subprocess.CompletedProcess(command, 0, stdout="ok\n", stderr="")


@pytest.fixture
def all_binaries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(setup_cli.shutil, "which", lambda name: f"/usr/bin/{name}")


def _install_fake(monkeypatch: pytest.MonkeyPatch, fake: FakeClaude) -> FakeClaude:
    monkeypatch.setattr(setup_cli.subprocess, "run", fake)
    return fake


def test_requires_claude_cli(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(setup_cli.shutil, "which", lambda name: None)

    assert setup_cli.main(["--python"]) == 1
    assert "'claude' CLI not found" in capsys.readouterr().err


def test_no_languages_is_usage_error(all_binaries, capsys: pytest.CaptureFixture[str]) -> None:
    assert setup_cli.main([]) == 1
    assert "No languages specified" in capsys.readouterr().err


def test_install_registers_plugins_and_sets_flag(
    all_binaries, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    fake = _install_fake(
        monkeypatch,
        FakeClaude({("claude", "plugin", "disable"): "plugin not found"}),
    )
    settings = tmp_path / ".claude" / "settings.json"

    exit_code = setup_cli.main(["--typescript", "--rust", "--settings", str(settings)])

    assert exit_code == 0
    assert fake.commands == [
        ["claude", "plugin", "marketplace", "add", "iloom-ai/stay-fresh-lsp-proxy"],
        ["claude", "plugin", "install", "stay-fresh-typescript@stay-fresh-lsp-proxy"],
        ["claude", "plugin", "disable", "typescript-lsp@claude-plugins-official"],
        ["claude", "plugin", "install", "stay-fresh-rust@stay-fresh-lsp-proxy"],
        ["claude", "plugin", "disable", "rust-analyzer-lsp@claude-plugins-official"],
    ]
    assert json.loads(settings.read_text()) == {"env": {"ENABLE_LSP_TOOL": "1"}}
    assert "Installed plugins: typescript, rust" in capsys.readouterr().out


def test_install_tolerates_already_present(all_binaries, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _install_fake(
        monkeypatch,
        FakeClaude(
            {
                ("claude", "plugin", "marketplace", "add"): "marketplace already exists",
                ("claude", "plugin", "install"): "plugin already installed",
            }
        ),
    )
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"theme": "dark", "env": {"FOO": "1"}}))

    assert setup_cli.main(["--python", "--settings", str(settings)]) == 0
    assert json.loads(settings.read_text()) == {"theme": "dark", "env": {"FOO": "1", "ENABLE_LSP_TOOL": "1"}}


def test_marketplace_failure_aborts(all_binaries, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = _install_fake(monkeypatch, FakeClaude({("claude", "plugin", "marketplace"): "network down"}))

    assert setup_cli.main(["--python", "--settings", str(tmp_path / "settings.json")]) == 1
    assert len(fake.commands) == 1
    assert not (tmp_path / "settings.json").exists()


def test_missing_lsp_binary_is_a_warning(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(setup_cli.shutil, "which", lambda name: None if name == "pyright-langserver" else name)
    _install_fake(monkeypatch, FakeClaude())

    assert setup_cli.main(["--python", "--settings", str(tmp_path / "settings.json")]) == 0
    assert "pyright-langserver not found. Install with: npm i -g pyright" in capsys.readouterr().out


def test_ensure_flag_replaces_unparseable_settings(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings = tmp_path / "settings.json"
    settings.write_text("{not json")

    assert setup_cli.ensure_enable_lsp_tool(settings) is True
    assert json.loads(settings.read_text()) == {"env": {"ENABLE_LSP_TOOL": "1"}}
    assert "Could not parse" in capsys.readouterr().out
    assert setup_cli.ensure_enable_lsp_tool(settings) is False


def test_uninstall_removes_plugins_and_flag(all_binaries, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = _install_fake(monkeypatch, FakeClaude({("claude", "plugin", "uninstall"): "not installed"}))
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"theme": "dark", "env": {"ENABLE_LSP_TOOL": "1"}}))

    assert setup_cli.main(["--uninstall", "--settings", str(settings)]) == 0
    assert json.loads(settings.read_text()) == {"theme": "dark"}
    assert fake.commands[-1] == ["claude", "plugin", "marketplace", "rm", "stay-fresh-lsp-proxy"]
    assert len(fake.commands) == 4


def test_remove_flag_keeps_other_env_and_ignores_bad_files(tmp_path: Path) -> None:
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"env": {"ENABLE_LSP_TOOL": "1", "OTHER": "x"}}))

    assert setup_cli.remove_enable_lsp_tool(settings) is True
    assert json.loads(settings.read_text()) == {"env": {"OTHER": "x"}}

    settings.write_text("{broken")
    assert setup_cli.remove_enable_lsp_tool(settings) is False
    assert settings.read_text() == "{broken"
    assert setup_cli.remove_enable_lsp_tool(tmp_path / "absent.json") is False
