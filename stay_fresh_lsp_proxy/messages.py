"""Message shapes recognised by the proxy.

Only ``textDocument/publishDiagnostics`` has a concrete schema. Every other
message is carried through as an opaque JSON object.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PUBLISH_DIAGNOSTICS = "textDocument/publishDiagnostics"

JSONObject = dict[str, Any]


class Diagnostic(BaseModel):
    """One reported issue.

    Only ``severity`` is type-checked since it is the one field filtering reads;
    the rest is carried opaquely and unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    severity: int | None = None
    message: Any = None
    range: Any = None
    source: Any = None
    code: Any = None
    tags: Any = None

    @property
    def effective_severity(self) -> int:
        """Severity used for filtering; a missing value counts as an error."""

        return 1 if self.severity is None else self.severity


class PublishDiagnosticsParams(BaseModel):
    """Target document plus its ordered diagnostics."""

    model_config = ConfigDict(extra="allow")

    uri: Any = None
    version: Any = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class PublishDiagnosticsNotification(BaseModel):
    """Parsed view of a publish-diagnostics notification."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Any = None
    method: Literal["textDocument/publishDiagnostics"]
    params: PublishDiagnosticsParams


class OpaqueMessage(BaseModel):
    """Any other message, carried unexamined."""

    raw: JSONObject


LspMessage = PublishDiagnosticsNotification | OpaqueMessage


def classify_message(message: JSONObject) -> LspMessage:
    """Return the typed view of ``message`` keyed by its method.

    Raises:
        pydantic.ValidationError: If the message claims to be a
            publish-diagnostics notification but its params do not fit.
    """
    if message.get("method") == PUBLISH_DIAGNOSTICS:
        return PublishDiagnosticsNotification.model_validate(message)
    return OpaqueMessage(raw=message)


__all__ = [
    "Diagnostic",
    "JSONObject",
    "LspMessage",
    "OpaqueMessage",
    "PUBLISH_DIAGNOSTICS",
    "PublishDiagnosticsNotification",
    "PublishDiagnosticsParams",
    "classify_message",
]
