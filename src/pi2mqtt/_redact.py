"""Helpers for safe debug logging.

Broker URLs may carry credentials and inbound payloads are arbitrary
bytes. This module makes both presentable before they reach a log line.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Return *url* with any password replaced by ``<redacted>``."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparseable-url>"
    if parts.password is None:
        return url

    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{parts.username or ''}:<redacted>@{host}"
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def redact_payload(value: Any, *, max_string: int = 256) -> str:
    """Return a printable, length-limited form of an MQTT payload."""
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return f"<bytes:{len(value)}b>"
    text = value if isinstance(value, str) else repr(value)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text
