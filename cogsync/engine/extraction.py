"""Metric extraction from arbitrarily nested activity records.

Activity schemas evolve independently of this engine, so extraction is
lenient: a missing path, a null along the way, or a non-numeric leaf is
reported as absent (``None``) instead of raising.  Aggregation code turns
absent into 0 at its own boundary via :func:`metric_or_zero`.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

CREATED_AT_FIELD = "createdAt"
SESSION_START_PATH = "sessionOverview.sessionStart"


def _walk(record: Any, path: str) -> Any:
    node = record
    for part in path.split("."):
        if node is None:
            return None
        if isinstance(node, Mapping):
            node = node.get(part)
        elif isinstance(node, (list, tuple)) and part.isdigit():
            idx = int(part)
            node = node[idx] if idx < len(node) else None
        else:
            return None
    return node


def extract_metric(record: Any, path: str) -> Optional[float]:
    """Read the numeric value at dot-separated *path*.

    Returns ``None`` when the path is missing or the leaf is not numeric.
    Strings ending in ``%`` ("85.5%") yield their numeric prefix.
    """
    value = _walk(record, path)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            try:
                return float(text[:-1].strip())
            except ValueError:
                return None
    return None


def metric_or_zero(record: Any, path: str) -> float:
    """:func:`extract_metric` with absent collapsed to 0."""
    value = extract_metric(record, path)
    return 0.0 if value is None else value


def is_valid_sample(value: Optional[float]) -> bool:
    """Zero, negatives and NaN mean "no data", not a low score."""
    return value is not None and not math.isnan(value) and value > 0


def first_positive(record: Any, paths: tuple[str, ...] | list[str]) -> float:
    """First positive metric along *paths*, else 0."""
    for path in paths:
        value = metric_or_zero(record, path)
        if value > 0:
            return value
    return 0.0


# ── Timestamps ───────────────────────────────────────────────────────────

def _to_datetime(raw: Any) -> Optional[datetime]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, (int, float)):
        if raw <= 0 or math.isnan(raw):
            return None
        # Epoch milliseconds from the producers; seconds are tolerated
        seconds = raw / 1000.0 if raw > 1e11 else float(raw)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(raw, Mapping):
        # Firestore-style exports: {"_seconds": ..., "_nanoseconds": ...}
        seconds = raw.get("_seconds", raw.get("seconds"))
        if isinstance(seconds, (int, float)) and seconds > 0:
            return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
        return None
    if isinstance(raw, str):
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def record_timestamp(record: Any) -> Optional[datetime]:
    """Store-native ``createdAt`` first, then the session-overview start."""
    if not isinstance(record, Mapping):
        return None
    dt = _to_datetime(record.get(CREATED_AT_FIELD))
    if dt is None:
        dt = _to_datetime(_walk(record, SESSION_START_PATH))
    return dt


def local_time(dt: datetime, tz_name: str) -> datetime:
    return dt.astimezone(ZoneInfo(tz_name))


def local_hour(dt: datetime, tz_name: str) -> float:
    """Fractional local hour in [0, 24)."""
    local = local_time(dt, tz_name)
    return local.hour + local.minute / 60.0 + local.second / 3600.0


def day_of_week(dt: datetime, tz_name: str) -> int:
    """Local day of week with Sunday = 0."""
    return (local_time(dt, tz_name).weekday() + 1) % 7
