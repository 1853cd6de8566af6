"""Shared pytest fixtures for stay_fresh_lsp_proxy tests."""

import logging
from typing import Generator

import pytest

from stay_fresh_lsp_proxy.debug_log import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo handler and level changes made by ``configure_debug_logging``."""

    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in saved[0]:
            handler.close()
    for handler in saved[0]:
        logger.addHandler(handler)
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every STAY_FRESH_* variable so defaults apply."""

    for name in ("STAY_FRESH_DROP_DIAGNOSTICS", "STAY_FRESH_MIN_SEVERITY", "STAY_FRESH_LOG"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
