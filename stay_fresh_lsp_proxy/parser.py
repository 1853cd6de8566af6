"""Incremental assembler turning a raw byte stream into LSP messages."""

from __future__ import annotations

import logging
from typing import Callable

from .errors import MalformedJson, MissingLengthField
from .framing import HEADER_SEPARATOR, decode_body, parse_content_length
from .messages import JSONObject

log = logging.getLogger(__name__)

# Characters of an undecodable body kept in the log line
MALFORMED_BODY_PREVIEW = 200

MessageCallback = Callable[[JSONObject], None]


class StreamParser:
    """Two-state frame assembler for one direction of a stream.

    While ``content_length`` is ``None`` the parser waits for a header block;
    otherwise it waits for that many body bytes. Malformed headers are skipped
    up to the next separator and malformed bodies are dropped, so one corrupt
    frame never stops the stream.

    A header that is cut off mid-field and never completed stalls the stream:
    the parser keeps waiting for a separator and has no timeout.

    Args:
        on_message: Called once per decoded message, in arrival order.
        logger: Destination for malformed-frame events.
    """

    def __init__(self, on_message: MessageCallback, logger: logging.Logger | None = None):
        self._on_message = on_message
        self._log = logger or log
        self._buffer = bytearray()
        self.content_length: int | None = None

    @property
    def buffered(self) -> int:
        """Number of bytes received but not yet consumed."""

        return len(self._buffer)

    def feed(self, chunk: bytes) -> None:
        """Append ``chunk`` and emit every message that is now complete."""

        self._buffer.extend(chunk)
        self._drain()

    def _drain(self) -> None:
        while True:
            if self.content_length is None:
                header_end = self._buffer.find(HEADER_SEPARATOR)
                if header_end == -1:
                    return

                header_block = bytes(self._buffer[:header_end])
                del self._buffer[: header_end + len(HEADER_SEPARATOR)]
                try:
                    self.content_length = parse_content_length(header_block)
                except MissingLengthField:
                    self._log.info(
                        "Malformed header, skipping: %s",
                        header_block.decode("ascii", errors="replace"),
                    )
                    continue

            if len(self._buffer) < self.content_length:
                return

            body = bytes(self._buffer[: self.content_length])
            del self._buffer[: self.content_length]
            self.content_length = None

            try:
                message = decode_body(body)
            except MalformedJson:
                preview = body.decode("utf-8", errors="replace")[:MALFORMED_BODY_PREVIEW]
                self._log.info("Failed to parse JSON: %s", preview)
                continue
            self._on_message(message)


__all__ = ["MALFORMED_BODY_PREVIEW", "MessageCallback", "StreamParser"]
