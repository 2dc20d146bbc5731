"""Peak-Performance Estimator.

Buckets every record by local hour-of-day and day-of-week and reports the
buckets with the highest mean score.  Session-length and fatigue figures
are simple proxies whose constants live in :class:`PeakPolicy`.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Optional

from cogsync.config.mappings import PeakPolicy
from cogsync.engine import stats
from cogsync.engine.extraction import (
    day_of_week,
    first_positive,
    local_hour,
    metric_or_zero,
    record_timestamp,
)
from cogsync.models.profile import PeakPerformance

SCORE_PATHS = ("performance.accuracy", "performance.winRate", "cognitiveMetrics.overallScore")
DURATION_PATH = "sessionOverview.totalSessionDuration"   # milliseconds


def _best_bucket(buckets: dict[int, list[float]], default: int) -> int:
    best, best_score = default, 0.0
    for key in sorted(buckets):
        avg = stats.mean(buckets[key])
        if avg > best_score:
            best, best_score = key, avg
    return best


def analyze_peak_performance(
    records: Iterable[dict[str, Any]],
    tz_name: str = "UTC",
    policy: Optional[PeakPolicy] = None,
) -> PeakPerformance:
    policy = policy or PeakPolicy()
    records = list(records)
    if not records:
        return PeakPerformance(
            best_time_of_day=policy.default_hour,
            best_day_of_week=policy.default_day,
            optimal_session_duration=policy.default_session_minutes,
            fatigue_threshold=policy.default_fatigue_threshold,
        )

    hourly: dict[int, list[float]] = defaultdict(list)
    daily: dict[int, list[float]] = defaultdict(list)
    durations: list[float] = []

    for rec in records:
        ts = record_timestamp(rec)
        if ts is None:
            continue
        score = first_positive(rec, SCORE_PATHS)
        if score > 0:
            hourly[int(local_hour(ts, tz_name))].append(score)
            daily[day_of_week(ts, tz_name)].append(score)
        duration_ms = metric_or_zero(rec, DURATION_PATH)
        if duration_ms > 0:
            durations.append(duration_ms / 60000.0)

    optimal = round(stats.upper_median(durations)) if durations else policy.default_session_minutes
    fatigue = int(stats.clamp(
        len(records) // policy.fatigue_divisor, policy.fatigue_min, policy.fatigue_max,
    ))
    return PeakPerformance(
        best_time_of_day=_best_bucket(hourly, policy.default_hour),
        best_day_of_week=_best_bucket(daily, policy.default_day),
        optimal_session_duration=optimal,
        fatigue_threshold=fatigue,
    )
