"""Helpers for inline (data URL / base64) image payloads."""

from __future__ import annotations

import base64
import re
from typing import Optional, Tuple

DEFAULT_MIME_TYPE = "image/jpeg"

_MIME_PATTERN = re.compile(r"data:(.*?);")


def is_inline_payload(value: Optional[str]) -> bool:
    """Return True when `value` is an inline data URL rather than a resolved reference."""
    return bool(value) and value.startswith("data:")


def is_remote_url(value: Optional[str]) -> bool:
    return bool(value) and value.lower().startswith(("http://", "https://"))


def payload_size(value: str) -> int:
    """Encoded size of an inline payload, as stored in a document."""
    return len(value.encode("utf-8"))


def split_data_url(value: str) -> Tuple[str, str]:
    """Split an inline payload into `(mime_type, base64_data)`.

    Accepts `data:<mime>;base64,<data>` as well as bare base64, which is
    assumed to be JPEG.
    """
    if "base64," in value:
        prefix, data = value.split("base64,", 1)
        match = _MIME_PATTERN.search(prefix)
        mime_type = match.group(1) if match and match.group(1) else DEFAULT_MIME_TYPE
        return mime_type, data
    return DEFAULT_MIME_TYPE, value


def to_data_url(image_bytes: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Encode raw image bytes into a data URL."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_url(value: str) -> Tuple[str, bytes]:
    """Return `(mime_type, raw_bytes)` for an inline payload.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    mime_type, data = split_data_url(value)
    try:
        raw = base64.b64decode(data, validate=True)
    except Exception as exc:
        raise ValueError("Invalid base64 image data provided") from exc
    return mime_type, raw
