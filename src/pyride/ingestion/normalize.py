"""Normalization helpers.

Centralizes lenient parsing of coordinates and timestamps coming from
the REST API and the realtime channel.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1e11


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware datetimes are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an API timestamp to an aware UTC datetime.

    Accepts ``datetime`` objects, ISO-8601 strings (a trailing ``Z`` is
    allowed) and epoch numbers in seconds or milliseconds. Returns
    ``None`` for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


def first_present(data: dict[str, Any], *keys: str) -> Any:
    """Return the value of the first key in *keys* that is present and not ``None``."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None
