"""``stay-fresh-setup``: register the proxy plugins with the ``claude`` CLI."""

from __future__ import annotations

import argparse
import json
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel

MARKETPLACE_ID = "iloom-ai/stay-fresh-lsp-proxy"
MARKETPLACE_NAME = "stay-fresh-lsp-proxy"
PROXY_BINARY = "stay-fresh-lsp-proxy"
LSP_TOOL_ENV_VAR = "ENABLE_LSP_TOOL"


class LanguageConfig(BaseModel):
    """Plugin wiring for one language server."""

    flag: str
    plugin: str
    lsp_binary: str
    conflicts: str
    install_hint: str

    @property
    def plugin_ref(self) -> str:
        return f"{self.plugin}@{MARKETPLACE_NAME}"


LANGUAGES: dict[str, LanguageConfig] = {
    "typescript": LanguageConfig(
        flag="--typescript",
        plugin="stay-fresh-typescript",
        lsp_binary="typescript-language-server",
        conflicts="typescript-lsp@claude-plugins-official",
        install_hint="npm i -g typescript-language-server typescript",
    ),
    "python": LanguageConfig(
        flag="--python",
        plugin="stay-fresh-python",
        lsp_binary="pyright-langserver",
        conflicts="pyright-lsp@claude-plugins-official",
        install_hint="npm i -g pyright",
    ),
    "rust": LanguageConfig(
        flag="--rust",
        plugin="stay-fresh-rust",
        lsp_binary="rust-analyzer",
        conflicts="rust-analyzer-lsp@claude-plugins-official",
        install_hint="rustup component add rust-analyzer",
    ),
}


class SetupError(RuntimeError):
    """Raised when an external command used during setup fails."""


def run_command(command: list[str]) -> str:
    """Run ``command`` and return its stripped stdout.

    Raises:
        SetupError: If the command exits non-zero or cannot be executed.
    """
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except OSError as exc:
        raise SetupError(f"Command failed: {' '.join(command)} ({exc})") from exc
    if result.returncode != 0:
        error_output = (result.stderr or "").strip() or f"Command failed: {' '.join(command)}"
        raise SetupError(error_output)
    return (result.stdout or "").strip()


def is_binary_in_path(binary: str) -> bool:
    return shutil.which(binary) is not None


def default_settings_path() -> Path:
    """Return the user-level settings file the LSP tool flag lives in."""

    return Path.home() / ".claude" / "settings.json"


def _read_settings(settings_path: Path) -> dict[str, Any] | None:
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def _write_settings(settings_path: Path, settings: dict[str, Any]) -> None:
    settings_path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")


def ensure_enable_lsp_tool(settings_path: Path) -> bool:
    """Set ``env.ENABLE_LSP_TOOL = "1"`` in the settings file.

    Returns:
        ``True`` when the file was changed, ``False`` if the flag was already set.
    """
    settings: dict[str, Any] = {}
    if settings_path.exists():
        loaded = _read_settings(settings_path)
        if loaded is None:
            print(f"  Warning: Could not parse {settings_path}, creating fresh")
        else:
            settings = loaded
    else:
        settings_path.parent.mkdir(parents=True, exist_ok=True)

    env = settings.get("env")
    if not isinstance(env, dict):
        env = {}
    if env.get(LSP_TOOL_ENV_VAR) == "1":
        print(f"  {LSP_TOOL_ENV_VAR} already set")
        return False

    env[LSP_TOOL_ENV_VAR] = "1"
    settings["env"] = env
    _write_settings(settings_path, settings)
    print(f"  Set {LSP_TOOL_ENV_VAR}=1 in {settings_path}")
    return True


def remove_enable_lsp_tool(settings_path: Path) -> bool:
    """Remove ``ENABLE_LSP_TOOL``; an ``env`` table left empty is dropped too.

    Unreadable settings files are left untouched.
    """
    if not settings_path.exists():
        return False
    settings = _read_settings(settings_path)
    if settings is None:
        return False

    env = settings.get("env")
    if not isinstance(env, dict) or LSP_TOOL_ENV_VAR not in env:
        return False

    del env[LSP_TOOL_ENV_VAR]
    if env:
        settings["env"] = env
    else:
        del settings["env"]

    _write_settings(settings_path, settings)
    print(f"  Removed {LSP_TOOL_ENV_VAR} from {settings_path}")
    return True


def install(requested: list[str], settings_path: Path) -> int:
    """Install the plugins for ``requested`` languages.

    Args:
        requested: Keys of :data:`LANGUAGES` to install.
        settings_path: Settings file receiving the LSP tool flag.

    Returns:
        Exit status: 0 on success, 1 when the marketplace cannot be added.
    """
    print("\nstay-fresh-setup: Installing LSP proxy plugins\n")

    print(f"Step 1: Checking for {PROXY_BINARY}...")
    warnings: list[str] = []
    if is_binary_in_path(PROXY_BINARY):
        print(f"  {PROXY_BINARY} found")
    else:
        message = f"{PROXY_BINARY} not found. Install with: pip install {PROXY_BINARY}"
        warnings.append(message)
        print(f"  Warning: {message}")

    print("\nStep 2: Checking LSP server binaries...")
    for lang in requested:
        language = LANGUAGES[lang]
        if is_binary_in_path(language.lsp_binary):
            print(f"  {language.lsp_binary} found")
        else:
            message = f"{language.lsp_binary} not found. Install with: {language.install_hint}"
            warnings.append(message)
            print(f"  Warning: {message}")

    print("\nStep 3: Adding stay-fresh marketplace...")
    try:
        run_command(["claude", "plugin", "marketplace", "add", MARKETPLACE_ID])
        print("  Marketplace added")
    except SetupError as exc:
        if "already" not in str(exc):
            print(f"  Error adding marketplace: {exc}", file=sys.stderr)
            return 1
        print("  Marketplace already added")

    print("\nStep 4: Installing plugins...")
    installed: list[str] = []
    for lang in requested:
        language = LANGUAGES[lang]
        try:
            run_command(["claude", "plugin", "install", language.plugin_ref])
            print(f"  Installed {language.plugin_ref}")
            installed.append(lang)
        except SetupError as exc:
            if "already" in str(exc):
                print(f"  {language.plugin_ref} already installed")
                installed.append(lang)
            else:
                print(f"  Error installing {language.plugin_ref}: {exc}", file=sys.stderr)

        # The official plugin may simply not be installed.
        try:
            run_command(["claude", "plugin", "disable", language.conflicts])
            print(f"  Disabled conflicting {language.conflicts}")
        except SetupError:
            pass

    print("\nStep 5: Enabling LSP tool...")
    ensure_enable_lsp_tool(settings_path)

    print("\n--- Setup Complete ---")
    if installed:
        print(f"Installed plugins: {', '.join(installed)}")
    if warnings:
        print("\nWarnings:")
        for warning in warnings:
            print(f"  - {warning}")
    print("\nRestart Claude Code for changes to take effect.")
    return 0


def uninstall(settings_path: Path) -> int:
    """Remove every stay-fresh plugin, the marketplace and the LSP tool flag."""

    print("\nstay-fresh-setup: Uninstalling LSP proxy plugins\n")

    print("Step 1: Removing plugins...")
    for language in LANGUAGES.values():
        try:
            run_command(["claude", "plugin", "uninstall", language.plugin_ref])
            print(f"  Removed {language.plugin_ref}")
        except SetupError:
            print(f"  {language.plugin_ref} not installed (skipping)")

    print("\nStep 2: Removing marketplace...")
    try:
        run_command(["claude", "plugin", "marketplace", "rm", MARKETPLACE_NAME])
        print("  Marketplace removed")
    except SetupError:
        print("  Marketplace not found (skipping)")

    print("\nStep 3: Cleaning up settings...")
    remove_enable_lsp_tool(settings_path)

    print("\n--- Uninstall Complete ---")
    print("Restart Claude Code for changes to take effect.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Construct the ``stay-fresh-setup`` argument parser."""

    parser = argparse.ArgumentParser(
        prog="stay-fresh-setup",
        description="Install stay-fresh LSP proxy plugins for Claude Code.",
    )
    for lang, language in LANGUAGES.items():
        parser.add_argument(
            language.flag,
            dest=lang,
            action="store_true",
            help=f"Install the {lang} LSP proxy ({language.lsp_binary}).",
        )
    parser.add_argument(
        "--uninstall",
        action="store_true",
        help="Remove all stay-fresh plugins and clean up settings.",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path to the Claude settings file (default: ~/.claude/settings.json).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for installing or removing the proxy plugins.

    Args:
        argv: Optional argument override primarily used for testing.

    Returns:
        Process exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    settings_path = (args.settings or default_settings_path()).expanduser()

    if not is_binary_in_path("claude"):
        print("Error: 'claude' CLI not found in PATH.", file=sys.stderr)
        print("Install Claude Code first: https://docs.anthropic.com/en/docs/claude-code", file=sys.stderr)
        return 1

    if args.uninstall:
        return uninstall(settings_path)

    requested = [lang for lang in LANGUAGES if getattr(args, lang)]
    if not requested:
        print("Error: No languages specified.\n", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    return install(requested, settings_path)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
