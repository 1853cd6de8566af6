"""Command-line entry point for ``stay-fresh-lsp-proxy``."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import List

from .config import DEBUG_ENV_VAR, DROP_DIAGNOSTICS_ENV_VAR, MIN_SEVERITY_ENV_VAR, ProxyConfig
from .debug_log import LOG_DIR_NAME, configure_debug_logging
from .errors import ClientInputError, SpawnFailure
from .proxy import run_proxy

log = logging.getLogger(__name__)

USAGE = (
    "Usage: stay-fresh-lsp-proxy <lsp-command> [args...]\n"
    "\n"
    "Environment variables:\n"
    f"  {DROP_DIAGNOSTICS_ENV_VAR}=true   Drop all diagnostics (default: true)\n"
    f"  {MIN_SEVERITY_ENV_VAR}=1          Min severity to keep (1=Error..4=Hint)\n"
    f"  {DEBUG_ENV_VAR}=true                Debug logging to $TMPDIR/{LOG_DIR_NAME}/\n"
)


def main(argv: List[str] | None = None) -> int:
    """Proxy an LSP server while filtering its diagnostics.

    The first argument names the server executable; everything after it is
    passed through untouched, so the proxy defines no flags of its own.

    Args:
        argv: Optional CLI argument override used during testing.

    Returns:
        The LSP server's exit code, or 1 for a usage error or spawn failure.
    """
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        sys.stderr.write(USAGE)
        return 1

    command, *args = argv
    config = ProxyConfig.from_env()
    log_file = configure_debug_logging(config)
    if log_file is not None:
        log.info("Debug log: %s", log_file)

    try:
        return asyncio.run(run_proxy(command, args, config))
    except SpawnFailure as exc:
        log.info("Failed to start %s: %s", exc.command, exc.reason)
        print(f"Failed to start LSP server: {exc.reason}", file=sys.stderr)
        return 1
    except ClientInputError as exc:
        print(f"Cannot read client input: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
