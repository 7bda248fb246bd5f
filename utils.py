"""Utility helpers for image decoding, public URLs and comment formatting."""

from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import quote, urlparse

DATA_URI_PREFIX_RE = re.compile(r"^data:[\w/+.-]*(;[\w=+-]+)*;base64,", re.IGNORECASE)


def decode_image_content(content: str) -> bytes:
    """
    Decode base64 image content, tolerating a ``data:`` URI prefix.

    Raises ValueError if the payload is not valid base64.
    """

    payload = DATA_URI_PREFIX_RE.sub("", content.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 content: {exc}") from exc


def build_public_url(prefix: str, bucket: str, key: str) -> str:
    """Construct the public URL of an object in a public bucket."""

    return f"{prefix.rstrip('/')}/{bucket.strip('/')}/{quote(key.lstrip('/'))}"


def escape_markdown_label(value: str) -> str:
    """Escape characters that would break a Markdown heading or image alt text."""

    return re.sub(r"([\[\]\\`*_#])", r"\\\1", value.strip()) or "screenshot"


def render_image_section(name: str, url: str) -> str:
    """Markdown section for one published screenshot."""

    label = escape_markdown_label(name)
    return f"### {label}\n\n![{label}]({url})\n"


def is_http_url(value: str) -> bool:
    """Return True if the value looks like an HTTP(S) URL."""

    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
