"""Sleep-log metrics: quality, schedule consistency, duration."""

from __future__ import annotations

import re
from typing import Iterable

from cogsync.engine import stats
from cogsync.models.sync import SleepEntry, SleepMetrics

_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")

TARGET_SLEEP_HOURS = 8.0
DURATION_POINTS = 70.0
CONTINUITY_POINTS = 30.0
POINTS_PER_WAKING = 5.0
VARIANCE_PENALTY = 10.0


def parse_clock(value: str) -> float:
    """"HH:MM" -> fractional hours."""
    match = _CLOCK.match(value or "")
    if not match:
        raise ValueError(f"Invalid clock time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid clock time {value!r}, expected HH:MM")
    return hours + minutes / 60.0


def sleep_duration(entry: SleepEntry) -> float:
    duration = parse_clock(entry.wake_time) - parse_clock(entry.bed_time)
    if duration < 0:
        duration += 24
    return duration


def sleep_quality(entry: SleepEntry) -> float:
    if entry.sleep_quality_score and entry.sleep_quality_score > 0:
        return float(entry.sleep_quality_score)
    duration_score = min(sleep_duration(entry) / TARGET_SLEEP_HOURS, 1.0) * DURATION_POINTS
    continuity = max(0.0, CONTINUITY_POINTS - (entry.waking_events or 0) * POINTS_PER_WAKING)
    return min(100.0, duration_score + continuity)


def _unwrapped_bed(entry: SleepEntry) -> float:
    # 00:30 sits one hour after 23:30, not 23 hours before it
    hour = parse_clock(entry.bed_time)
    return hour + 24 if hour < 12 else hour


def calculate_sleep_metrics(entries: Iterable[SleepEntry]) -> SleepMetrics:
    entries = list(entries)
    if not entries:
        return SleepMetrics()

    beds = [_unwrapped_bed(e) for e in entries]
    wakes = [parse_clock(e.wake_time) for e in entries]
    consistency = max(0.0, 100.0 - VARIANCE_PENALTY * (stats.variance(beds) + stats.variance(wakes)))

    return SleepMetrics(
        average_quality=round(stats.mean([sleep_quality(e) for e in entries]), 2),
        consistency=round(consistency, 2),
        duration=round(stats.mean([sleep_duration(e) for e in entries]), 2),
    )
