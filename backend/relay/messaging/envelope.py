"""
Inbound frame parsing for the relay protocol.

Relayed payloads are opaque: the server only looks inside far enough to read
the optional ``type`` tag, which drives logging and the best-effort drop
policy. The raw frame is kept untouched for forwarding.
"""

import json
from dataclasses import dataclass

# Frames larger than this many bytes (UTF-8 for text frames) are rejected before JSON parsing.
MAX_FRAME_LEN = 64 * 1024


class EnvelopeError(Exception):
    """Error raised when an inbound frame is not a JSON object."""


@dataclass(frozen=True)
class Envelope:
    """A parsed inbound frame: the extracted type tag plus the raw frame."""

    message_type: str | None
    raw: str | bytes


def parse_envelope(raw: str | bytes) -> Envelope:
    """
    Parse a text or binary frame and extract its ``type`` tag.

    Raises EnvelopeError if the frame is oversized, not valid UTF-8 JSON,
    nested too deeply to decode, or does not decode to an object.
    """
    size = _frame_size(raw)
    if size > MAX_FRAME_LEN:
        raise EnvelopeError(f"frame too large: {size} bytes (max {MAX_FRAME_LEN})")
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise EnvelopeError(f"failed to decode JSON frame: {e}") from e

    if not isinstance(data, dict):
        raise EnvelopeError(f"expected object, got {type(data).__name__}")

    message_type = data.get("type")
    if not isinstance(message_type, str):
        message_type = None
    return Envelope(message_type=message_type, raw=raw)


def _frame_size(raw: str | bytes) -> int:
    if isinstance(raw, bytes):
        return len(raw)
    # A character takes at least one UTF-8 byte, so long text fails fast without encoding.
    if len(raw) > MAX_FRAME_LEN:
        return len(raw)
    return len(raw.encode("utf-8", "surrogatepass"))
