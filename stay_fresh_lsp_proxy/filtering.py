"""Policy applied to server-to-client messages."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .config import ProxyConfig
from .messages import PUBLISH_DIAGNOSTICS, JSONObject, PublishDiagnosticsNotification, classify_message

log = logging.getLogger(__name__)


class DiagnosticFilter:
    """Rewrite or suppress ``textDocument/publishDiagnostics`` notifications.

    Every other message is returned as the very same object. The input is
    never mutated; a rewritten notification is a shallow copy with a new
    ``params`` table.
    """

    def __init__(self, config: ProxyConfig, logger: logging.Logger | None = None):
        self.config = config
        self._log = logger or log

    def __call__(self, message: JSONObject) -> JSONObject | None:
        return self.filter(message)

    def filter(self, message: JSONObject) -> JSONObject | None:
        """Return the message to forward, or ``None`` to suppress it."""

        if message.get("method") != PUBLISH_DIAGNOSTICS:
            return message

        if self.config.drop_all:
            self._log.info("Dropping diagnostics for %s", _target_uri(message))
            return None

        try:
            typed = classify_message(message)
        except ValidationError as exc:
            self._log.info(
                "Unrecognised publishDiagnostics params for %s, forwarding unchanged: %s",
                _target_uri(message),
                exc.errors(include_url=False),
            )
            return message
        assert isinstance(typed, PublishDiagnosticsNotification)

        raw_params = message["params"]
        kept = [
            raw
            for raw, diagnostic in zip(raw_params.get("diagnostics", []), typed.params.diagnostics)
            if diagnostic.effective_severity <= self.config.min_severity
        ]
        self._log.info(
            "Filtered diagnostics for %s: %d → %d",
            typed.params.uri,
            len(typed.params.diagnostics),
            len(kept),
        )
        return {**message, "params": {**raw_params, "diagnostics": kept}}


def _target_uri(message: JSONObject) -> object:
    params = message.get("params")
    return params.get("uri") if isinstance(params, dict) else None


def filter_message(message: JSONObject, config: ProxyConfig) -> JSONObject | None:
    """Apply the diagnostic policy described by ``config`` to one message."""

    return DiagnosticFilter(config).filter(message)


__all__ = ["DiagnosticFilter", "filter_message"]
