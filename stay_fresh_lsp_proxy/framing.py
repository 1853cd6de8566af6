"""Content-Length framing used by the Language Server Protocol."""

from __future__ import annotations

import json
import re

from .errors import MalformedBody, MalformedJson, MissingLengthField
from .messages import JSONObject

CONTENT_LENGTH_HEADER = "Content-Length: "
HEADER_SEPARATOR = b"\r\n\r\n"

_CONTENT_LENGTH = re.compile(rb"Content-Length:\s*(\d+)", re.IGNORECASE)


def encode_message(message: JSONObject) -> bytes:
    """Serialise ``message`` into a complete frame.

    The declared length counts encoded bytes, not characters. Strings holding
    a lone surrogate (valid JSON, not encodable as UTF-8) are written back as
    ``\\uXXXX`` escapes.
    """
    try:
        body = json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError:
        body = json.dumps(message, separators=(",", ":"), ensure_ascii=True).encode("ascii")
    header = f"{CONTENT_LENGTH_HEADER}{len(body)}\r\n\r\n".encode("ascii")
    return header + body


def parse_content_length(header_block: bytes) -> int:
    """Extract the body length from a header block (separator excluded).

    Header names match case-insensitively; other fields are ignored.

    Raises:
        MissingLengthField: If the block carries no Content-Length field.
    """
    match = _CONTENT_LENGTH.search(header_block)
    if match is None:
        raise MissingLengthField(header_block.decode("ascii", errors="replace"))
    return int(match.group(1))


def decode_body(body: bytes) -> JSONObject:
    """Decode a frame body into a message.

    Raises:
        MalformedJson: If the body is not UTF-8 JSON or not a JSON object.
    """
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedJson(str(exc)) from exc
    if not isinstance(payload, dict):
        raise MalformedJson(f"Expected a JSON object, got {type(payload).__name__}.")
    return payload


def decode_frame(header_block: bytes, body: bytes) -> JSONObject:
    """Decode one frame whose header block and body are already split."""

    length = parse_content_length(header_block)
    if len(body) != length:
        raise MalformedBody(f"Header declares {length} bytes but body has {len(body)}.")
    return decode_body(body)


__all__ = [
    "CONTENT_LENGTH_HEADER",
    "HEADER_SEPARATOR",
    "decode_body",
    "decode_frame",
    "encode_message",
    "parse_content_length",
]
