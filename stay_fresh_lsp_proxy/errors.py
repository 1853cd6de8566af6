"""Exception taxonomy shared by the framing, parsing and proxy layers."""


class ProxyError(Exception):
    """Base class for every error raised by the proxy."""


class SpawnFailure(ProxyError):
    """Raised when the LSP server process cannot be started."""

    def __init__(self, command: str, reason: str):
        super().__init__(reason)
        self.command = command
        self.reason = reason


class ClientInputError(ProxyError):
    """Raised when the client input stream cannot be attached to the event loop."""


class MalformedHeader(ProxyError):
    """Raised when a frame header block cannot be interpreted."""


class MissingLengthField(MalformedHeader):
    """Raised when a header block carries no Content-Length field."""


class MalformedBody(ProxyError):
    """Raised when a frame body is not a usable message."""


class MalformedJson(MalformedBody):
    """Raised when a frame body is not a UTF-8 encoded JSON object."""
