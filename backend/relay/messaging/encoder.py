"""
JSON encoder/decoder for the relay wire format.

Every frame is a single JSON object. Decoding enforces a size limit so a
single client cannot make the server buffer arbitrarily large payloads.
"""

import json
from typing import Any

DEFAULT_MAX_MESSAGE_BYTES = 64 * 1024


class DecodeError(Exception):
    """Error raised when an inbound frame is not a usable JSON object."""


def encode(data: dict[str, Any]) -> str:
    """
    Encode a dict to a compact JSON string.
    """
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode(data: str | bytes, max_bytes: int = DEFAULT_MAX_MESSAGE_BYTES) -> dict[str, Any]:
    """
    Decode a text or binary frame to a dict.

    Raises DecodeError if the frame exceeds max_bytes, is not valid UTF-8
    JSON, or does not hold a JSON object.
    """
    size = len(data) if isinstance(data, bytes) else len(data.encode("utf-8"))
    if size > max_bytes:
        raise DecodeError(f"message too large: {size} bytes (max {max_bytes})")
    try:
        result = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"failed to decode JSON message: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected object, got {type(result).__name__}")

    return result
