"""Conversion between raw image bytes, base64 text and data URIs.

Large uploads (tens of megabytes) are encoded in fixed-size chunks. The chunk
size is a multiple of 3 so every chunk maps to whole base64 quanta and the
pieces can be joined without padding appearing mid-string.
"""

import base64
import binascii
from typing import Optional

from image_gateway.core.errors import InvalidBase64Error
from image_gateway.core.models import DEFAULT_MEDIA_TYPE

CHUNK_SIZE = 3 * 256 * 1024  # 768 KiB of input per chunk
DATA_URI_PREFIX = "data:"
BASE64_MARKER = ";base64,"


def encode(data: bytes) -> str:
    """Encode bytes as a base64 string, chunk by chunk."""
    view = memoryview(data)
    chunks = []
    for start in range(0, len(view), CHUNK_SIZE):
        chunks.append(base64.b64encode(view[start:start + CHUNK_SIZE]).decode("ascii"))
    return "".join(chunks)


def decode(text: str) -> bytes:
    """Inverse of :func:`encode`. Also accepts a full data URI."""
    if text.startswith(DATA_URI_PREFIX):
        _, text = _split_data_uri(text)
    try:
        return base64.b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidBase64Error(f"Invalid base64 payload: {e}") from e


def to_data_uri(data: bytes, media_type: Optional[str] = None) -> str:
    return f"{DATA_URI_PREFIX}{media_type or DEFAULT_MEDIA_TYPE}{BASE64_MARKER}{encode(data)}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a data URI into its media type and decoded bytes."""
    if not uri.startswith(DATA_URI_PREFIX):
        raise InvalidBase64Error("Not a data URI")
    media_type, payload = _split_data_uri(uri)
    return media_type or DEFAULT_MEDIA_TYPE, decode(payload)


def _split_data_uri(uri: str) -> tuple[str, str]:
    header, marker, payload = uri[len(DATA_URI_PREFIX):].partition(BASE64_MARKER)
    if not marker:
        raise InvalidBase64Error("Data URI is not base64 encoded")
    return header, payload
