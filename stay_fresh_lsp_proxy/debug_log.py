"""Optional debug log written to a per-run file under the temp directory."""

from __future__ import annotations

import logging
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from .config import ProxyConfig

LOGGER_NAME = "stay_fresh_lsp_proxy"
LOG_DIR_NAME = "stay-fresh-lsp-proxy"


class _IsoTimestampFormatter(logging.Formatter):
    """Render ``[2024-01-01T00:00:00.000Z] message`` lines."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def default_log_dir() -> Path:
    """Return the directory that collects debug logs."""

    return Path(tempfile.gettempdir()) / LOG_DIR_NAME


def log_file_for_run(log_dir: Path, started_at: float) -> Path:
    """Return the log file path for a run that started at ``started_at`` (epoch seconds)."""

    return log_dir / f"proxy-{int(started_at * 1000)}.log"


def configure_debug_logging(
    config: ProxyConfig,
    *,
    log_dir: Path | None = None,
    started_at: float | None = None,
) -> Path | None:
    """Attach the run's log sink to the package logger.

    Args:
        config: Resolved runtime configuration; only ``debug`` is consulted.
        log_dir: Override for the log directory, mainly for tests.
        started_at: Run start time in epoch seconds; defaults to now.

    Returns:
        Path of the log file when debug logging is enabled, otherwise ``None``.
        A disabled logger touches neither the filesystem nor stderr.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    if not config.debug:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        return None

    directory = log_dir or default_log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    log_file = log_file_for_run(directory, time.time() if started_at is None else started_at)

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(_IsoTimestampFormatter("[%(asctime)s] %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return log_file


__all__ = [
    "LOGGER_NAME",
    "LOG_DIR_NAME",
    "configure_debug_logging",
    "default_log_dir",
    "log_file_for_run",
]
