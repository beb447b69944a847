"""Masking of credentials in DEBUG log output.

Request bodies and realtime payloads are logged at DEBUG level; the bearer
token and broker password must never end up in a log record.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SECRET_KEYS = frozenset({"access_token", "authorization", "password", "mqtt_password", "token"})
_MASK = "<redacted>"


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Copy *value* with secret keys masked and long strings shortened.

    Keys are matched case-insensitively at any nesting level. Raw bytes are
    summarized by their length; other scalars pass through unchanged.
    """
    if isinstance(value, Mapping):
        return {
            str(key): _MASK if str(key).lower() in _SECRET_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return value[:max_string] + "...<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    return value
