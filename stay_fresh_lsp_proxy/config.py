"""Runtime configuration resolved once from the process environment."""

from __future__ import annotations

import os
import re
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field

DROP_DIAGNOSTICS_ENV_VAR = "STAY_FRESH_DROP_DIAGNOSTICS"
MIN_SEVERITY_ENV_VAR = "STAY_FRESH_MIN_SEVERITY"
DEBUG_ENV_VAR = "STAY_FRESH_LOG"

DEFAULT_MIN_SEVERITY = 1

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ProxyConfig(BaseModel):
    """Immutable filtering and logging policy for one proxy run."""

    model_config = ConfigDict(frozen=True)

    drop_all: bool = Field(default=True)
    min_severity: int = Field(default=DEFAULT_MIN_SEVERITY)
    debug: bool = Field(default=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProxyConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Mapping to read from; defaults to ``os.environ``.

        Returns:
            Frozen configuration. Values are parsed permissively: anything other
            than ``"false"`` enables drop-all, only ``"true"`` enables debug
            logging, and the minimum severity is not range-checked.
        """
        env = os.environ if environ is None else environ
        return cls(
            drop_all=env.get(DROP_DIAGNOSTICS_ENV_VAR) != "false",
            min_severity=parse_min_severity(env.get(MIN_SEVERITY_ENV_VAR)),
            debug=env.get(DEBUG_ENV_VAR) == "true",
        )


def parse_min_severity(raw_value: str | None) -> int:
    """Return the leading integer of ``raw_value`` or the default severity."""

    if not raw_value:
        return DEFAULT_MIN_SEVERITY
    match = _LEADING_INT.match(raw_value)
    if match is None:
        return DEFAULT_MIN_SEVERITY
    return int(match.group(1))


__all__ = [
    "DEBUG_ENV_VAR",
    "DEFAULT_MIN_SEVERITY",
    "DROP_DIAGNOSTICS_ENV_VAR",
    "MIN_SEVERITY_ENV_VAR",
    "ProxyConfig",
    "parse_min_severity",
]
