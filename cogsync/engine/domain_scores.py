"""Domain Score Aggregator.

Turns per-activity records into 0-100 domain scores for three time
windows, with a confidence figure for the instant window and personal
bests carried forward from the previous profile.

An activity with no qualifying values in a window contributes nothing to
that window, so a missing activity never drags a domain towards 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

from cogsync.config.mappings import DomainMapping, MetricSource
from cogsync.engine import stats
from cogsync.engine.extraction import (
    extract_metric,
    is_valid_sample,
    local_time,
    record_timestamp,
)
from cogsync.models.profile import DailyScores, DomainScore, GameContribution, UnifiedProfile


RecordsByActivity = Mapping[str, list[dict[str, Any]]]

# Confidence policy
FULL_CONFIDENCE_SAMPLES = 10
SAMPLE_WEIGHT = 0.6
CONSISTENCY_WEIGHT = 0.4


class TimeWindow:
    INSTANT = "instant"
    WEEK = "7d"
    MONTH = "30d"

    DAYS = {WEEK: 7, MONTH: 30}


@dataclass(frozen=True)
class WindowScore:
    score: int
    confidence: float
    sample_count: int


def _timestamped(records: Iterable[dict[str, Any]]) -> list[tuple[datetime, dict[str, Any]]]:
    out = []
    for rec in records:
        ts = record_timestamp(rec)
        if ts is not None:
            out.append((ts, rec))
    return out


def filter_window(
    records: Iterable[dict[str, Any]],
    window: str,
    now: datetime,
) -> list[dict[str, Any]]:
    """Records inside *window*; records without any timestamp are dropped."""
    stamped = _timestamped(records)
    days = TimeWindow.DAYS.get(window)
    if days is None:
        return [rec for _, rec in stamped]
    cutoff = now - timedelta(days=days)
    return [rec for ts, rec in stamped if ts >= cutoff]


def source_values(records: Iterable[dict[str, Any]], source: MetricSource) -> list[float]:
    """Qualifying (positive, non-NaN) values of *source*'s metric."""
    values = []
    for rec in records:
        value = extract_metric(rec, source.metric)
        if is_valid_sample(value):
            values.append(value)
    return values


def normalize_source(avg_value: float, source: MetricSource) -> float:
    if source.normalize_range is not None:
        low, high = source.normalize_range
        if source.inverse:
            return stats.inverse_normalize(avg_value, low, high)
        return stats.normalize(avg_value, low, high)
    if source.inverse:
        return stats.clamp(100.0 - avg_value, 0.0, 100.0)
    # Already on a 0-100 scale
    return stats.clamp(avg_value, 0.0, 100.0)


def _confidence(sample_count: int, normalized: list[float]) -> float:
    if not normalized:
        return 0.0
    sample_factor = min(1.0, sample_count / FULL_CONFIDENCE_SAMPLES)
    if len(normalized) < 2:
        consistency = 1.0
    else:
        consistency = stats.clamp((100.0 - stats.std_dev(normalized)) / 100.0, 0.0, 1.0)
    return stats.clamp(SAMPLE_WEIGHT * sample_factor + CONSISTENCY_WEIGHT * consistency, 0.0, 1.0)


def score_domain(
    sources: Iterable[MetricSource],
    records_by_activity: RecordsByActivity,
    window: str,
    now: datetime,
) -> WindowScore:
    """Weighted score of one domain over one time window."""
    weighted_sum = 0.0
    total_weight = 0.0
    normalized: list[float] = []
    sample_count = 0

    for source in sources:
        records = filter_window(records_by_activity.get(source.activity, []), window, now)
        if not records:
            continue
        values = source_values(records, source)
        if not values:
            continue
        value = normalize_source(stats.mean(values), source)
        weighted_sum += value * source.weight
        total_weight += source.weight
        normalized.append(value)
        sample_count += len(values)

    score = round(weighted_sum / total_weight) if total_weight > 0 else 0
    return WindowScore(
        score=int(stats.clamp(score, 0, 100)),
        confidence=_confidence(sample_count, normalized),
        sample_count=sample_count,
    )


def _personal_best(
    current: int,
    prior: Optional[DomainScore],
    now_iso: str,
) -> tuple[int, str]:
    if prior is None:
        return current, now_iso
    if current > prior.personal_best:
        return current, now_iso
    return prior.personal_best, prior.personal_best_date or now_iso


def calculate_all_domain_scores(
    records_by_activity: RecordsByActivity,
    mapping: DomainMapping,
    previous: Optional[UnifiedProfile] = None,
    now: Optional[datetime] = None,
) -> dict[str, DomainScore]:
    """DomainScore for every configured domain."""
    now = now or datetime.now(timezone.utc)
    now_iso = now.isoformat()
    prior_domains = previous.domains if previous is not None else {}

    scores: dict[str, DomainScore] = {}
    for domain in mapping.domain_names:
        sources = mapping.sources(domain)
        instant = score_domain(sources, records_by_activity, TimeWindow.INSTANT, now)
        week = score_domain(sources, records_by_activity, TimeWindow.WEEK, now)
        month = score_domain(sources, records_by_activity, TimeWindow.MONTH, now)
        best, best_date = _personal_best(instant.score, prior_domains.get(domain), now_iso)
        scores[domain] = DomainScore(
            current=instant.score,
            average_7d=week.score,
            average_30d=month.score,
            personal_best=best,
            personal_best_date=best_date,
            confidence=round(instant.confidence, 4),
        )
    return scores


# ── Contributions ──

def _activity_label(activity: str) -> str:
    return activity[: -len("Sessions")] if activity.endswith("Sessions") else activity


def build_contributions(
    records_by_activity: RecordsByActivity,
    mapping: DomainMapping,
    now: Optional[datetime] = None,
) -> dict[str, list[GameContribution]]:
    """Per-domain transparency records, most influential activity first."""
    now_iso = (now or datetime.now(timezone.utc)).isoformat()
    contributions: dict[str, list[GameContribution]] = {}
    for domain in mapping.domain_names:
        entries = []
        for source in mapping.sources(domain):
            values = source_values(records_by_activity.get(source.activity, []), source)
            if not values:
                continue
            if source.reliability is not None:
                reliability = source.reliability
            else:
                reliability = stats.consistency(values) / 100.0
            entries.append(GameContribution(
                activity=_activity_label(source.activity),
                weight=source.weight,
                sample_count=len(values),
                avg_score=round(normalize_source(stats.mean(values), source)),
                reliability=round(stats.clamp(reliability, 0.0, 1.0), 4),
                last_updated=now_iso,
            ))
        entries.sort(key=lambda c: c.weight, reverse=True)
        contributions[domain] = entries
    return contributions


# ── Daily scores ──

def calculate_daily_scores(
    records_by_activity: RecordsByActivity,
    mapping: DomainMapping,
    day: date,
    tz_name: str = "UTC",
) -> DailyScores:
    """Domain scores from records whose local calendar day is *day*."""
    todays: dict[str, list[dict[str, Any]]] = {}
    for activity in mapping.collections:
        todays[activity] = [
            rec for ts, rec in _timestamped(records_by_activity.get(activity, []))
            if local_time(ts, tz_name).date() == day
        ]

    # Every surviving record is inside the day, so the instant window applies
    reference = datetime.combine(day, datetime.max.time(), tzinfo=timezone.utc)
    scores = {
        domain: score_domain(mapping.sources(domain), todays, TimeWindow.INSTANT, reference).score
        for domain in mapping.domain_names
    }
    return DailyScores(
        date=day.isoformat(),
        scores=scores,
        computed_from={activity: bool(recs) for activity, recs in todays.items()},
    )
