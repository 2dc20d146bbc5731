"""
Parsers for exported telemetry files.

Each parser reads one file and returns the structures the store ingests.
A missing file yields an empty result; malformed content raises.
"""

from __future__ import annotations

import json
import math
import re
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from cogsync.engine.sleep import parse_clock
from cogsync.models.sync import QuizResponses, SleepEntry

SLEEP_REQUIRED_COLUMNS = ("date", "bed_time", "wake_time")


# ---------------------------------------------------------------------------
# Activity export JSON
# ---------------------------------------------------------------------------

def parse_activity_export(path: Path | str) -> dict[str, list[dict[str, Any]]]:
    """Return ``{activity: [record, ...]}`` from an export file.

    The file holds a JSON object keyed by activity collection; entries
    that are not objects are skipped.
    """
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected an object keyed by activity")

    out: dict[str, list[dict[str, Any]]] = {}
    for activity, records in raw.items():
        if not isinstance(records, list):
            continue
        out[str(activity)] = [rec for rec in records if isinstance(rec, dict)]
    return out


# ---------------------------------------------------------------------------
# Sleep log CSV
# ---------------------------------------------------------------------------

def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    number = float(value)
    return None if math.isnan(number) else number


def parse_sleep_log_csv(path: Path | str) -> list[SleepEntry]:
    """Sleep entries from a CSV with ``date, bed_time, wake_time`` columns.

    Optional columns: ``waking_events``, ``sleep_quality_score``.  Clock
    values are validated here so bad rows fail at the boundary.
    """
    path = Path(path)
    if not path.exists():
        return []
    df = pd.read_csv(path, dtype=str).fillna("")
    df.columns = [c.strip() for c in df.columns]
    missing = [c for c in SLEEP_REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {', '.join(missing)}")

    entries = []
    for row in df.to_dict(orient="records"):
        bed, wake = row["bed_time"].strip(), row["wake_time"].strip()
        parse_clock(bed)
        parse_clock(wake)
        events = _optional_number(row.get("waking_events"))
        entries.append(SleepEntry(
            date=row["date"].strip(),
            bed_time=bed,
            wake_time=wake,
            waking_events=int(events) if events is not None else 0,
            sleep_quality_score=_optional_number(row.get("sleep_quality_score")),
        ))
    return entries


# ---------------------------------------------------------------------------
# Survey JSON
# ---------------------------------------------------------------------------

def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def parse_survey_json(path: Path | str) -> Optional[QuizResponses]:
    """Survey answers; camelCase keys (``naturalWake``) are accepted."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return QuizResponses.from_dict({_snake(k): v for k, v in raw.items()})
