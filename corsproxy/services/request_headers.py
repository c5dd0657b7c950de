"""Outbound request header construction.

Incoming headers are copied minus those identifying the caller or the proxy
hop, then the caller's ``x-cors-headers`` JSON object is overlaid on top. The
overlay lets a browser send headers it is not allowed to set itself
(``Cookie``, ``User-Agent``...).
"""
from __future__ import annotations

import json
import re
from logging import getLogger
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import httpx

from corsproxy.core.logging import SERVICE_NAME

log = getLogger(f"{SERVICE_NAME}.Headers")

CUSTOM_HEADERS = "x-cors-headers"

# origin*, *eferer*, cf-*, x-forw*, x-cors-headers*
_EXCLUDED = re.compile(r"^origin|eferer|^cf-|^x-forw|^x-cors-headers", re.IGNORECASE)


def is_excluded(name: Union[str, bytes]) -> bool:
    if isinstance(name, bytes):
        name = name.decode("latin-1")
    return _EXCLUDED.search(name) is not None


def parse_custom_headers(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the ``x-cors-headers`` value; anything but a JSON object yields None."""
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        log.debug("ignoring malformed %s: %s", CUSTOM_HEADERS, e)
        return None
    if not isinstance(parsed, dict):
        log.debug("ignoring non-object %s: %r", CUSTOM_HEADERS, parsed)
        return None
    return parsed


def _header_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def build_outbound_headers(
    incoming: Iterable[Tuple[Union[str, bytes], Union[str, bytes]]],
    custom: Optional[Dict[str, Any]] = None,
) -> httpx.Headers:
    """Filter ``incoming`` and overlay ``custom``; same-named custom headers win.

    Pass raw ``(bytes, bytes)`` pairs to keep non-ASCII values byte for byte.
    """
    headers = httpx.Headers([(k, v) for k, v in incoming if not is_excluded(k)])
    for name, value in (custom or {}).items():
        headers[name] = _header_value(value)
    return headers
