"""
Data URL encoding for inlining photo bytes in backup documents.

Backups embed each photo as ``data:<mime>;base64,<payload>``. Decoding also
accepts percent-encoded (non-base64) data URLs.
"""

from __future__ import annotations

import base64
import binascii
from urllib.parse import unquote_to_bytes

DEFAULT_MIME = "application/octet-stream"


def encode_data_url(data: bytes, mime: str) -> str:
    """Encode bytes as a base64 data URL."""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime or DEFAULT_MIME};base64,{payload}"


def decode_data_url(url: str) -> tuple[bytes, str]:
    """Decode a data URL.

    Args:
        url: A ``data:`` URL

    Returns:
        (payload bytes, mime type)

    Raises:
        ValueError: If the URL is not a well-formed data URL
    """
    if not isinstance(url, str) or not url.startswith("data:"):
        raise ValueError("not a data URL")

    header, sep, payload = url[len("data:") :].partition(",")
    if not sep:
        raise ValueError("data URL has no payload separator")

    params = [p.strip() for p in header.split(";")]
    mime = params[0] or DEFAULT_MIME
    is_base64 = "base64" in (p.lower() for p in params[1:])

    if is_base64:
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)

    return data, mime
