"""Cross-activity behavioural metrics.

Each metric averages, over every record of every activity, the first
positive value found along a fallback chain of field paths.  Activities
report the same construct under different names, hence the chains.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from cogsync.engine import stats
from cogsync.engine.extraction import extract_metric, first_positive, record_timestamp
from cogsync.models.profile import CrossActivityMetrics

LEARNING_RATE_BLOCK = 5
LEARNING_SCORE_PATHS = ("performance.accuracy", "performance.winRate")

Record = dict[str, Any]


def _decision_time(rec: Record) -> float:
    return first_positive(rec, (
        "decisionMaking.averageDecisionTime",
        "cognitive.avgHesitationTime",
        "performance.averageReactionTime",
    ))


def _strategic_consistency(rec: Record) -> float:
    value = first_positive(rec, ("executiveFunction.strategicConsistency", "performance.consistency"))
    if value > 0:
        return value
    ratio = extract_metric(rec, "cognitive.strategicMoveRatio")
    return ratio * 100 if ratio else 0.0


def _error_rate(rec: Record) -> float:
    value = first_positive(rec, ("decisionMaking.errorRate", "performance.errorRate"))
    if value > 0:
        return value
    accuracy = extract_metric(rec, "performance.accuracy")
    if accuracy is None:
        return -1.0
    return max(0.0, 100.0 - accuracy)


def _adaptation_speed(rec: Record) -> float:
    return first_positive(rec, (
        "cognitiveMetrics.adaptationSpeed",
        "cognitiveFlexibility.adaptationEfficiency",
    ))


def _planning_depth(rec: Record) -> float:
    return first_positive(rec, ("executiveFunction.planningDepth", "cognitive.planningPauses"))


def _impulse_control(rec: Record) -> float:
    return first_positive(rec, (
        "inhibitionControl.inhibitionScore",
        "cognitiveMetrics.impulseControl",
    ))


def _focus_stability(rec: Record) -> float:
    return 100.0 - (extract_metric(rec, "cognitive.focusChanges") or 0.0)


def _collect(
    records: list[Record],
    fn: Callable[[Record], float],
    keep: Callable[[float], bool] = lambda v: v > 0,
) -> list[float]:
    return [v for v in map(fn, records) if keep(v)]


def learning_rate(records: Iterable[Record]) -> float:
    """Percent improvement of the newest block over the oldest block."""
    stamped = [(ts, rec) for rec in records if (ts := record_timestamp(rec)) is not None]
    if len(stamped) < LEARNING_RATE_BLOCK:
        return 0.0
    stamped.sort(key=lambda pair: pair[0])
    first = [first_positive(rec, LEARNING_SCORE_PATHS) for _, rec in stamped[:LEARNING_RATE_BLOCK]]
    last = [first_positive(rec, LEARNING_SCORE_PATHS) for _, rec in stamped[-LEARNING_RATE_BLOCK:]]
    first_avg, last_avg = stats.mean(first), stats.mean(last)
    return stats.round1((last_avg - first_avg) / max(first_avg, 1) * 100)


def _rounded_mean(values: list[float]) -> int:
    return round(stats.mean(values)) if values else 0


def calculate_cross_metrics(
    records_by_activity: Optional[dict[str, list[Record]]],
) -> CrossActivityMetrics:
    records = [rec for recs in (records_by_activity or {}).values() for rec in recs]
    if not records:
        return CrossActivityMetrics()

    planning = _collect(records, _planning_depth)
    return CrossActivityMetrics(
        average_decision_time=_rounded_mean(_collect(records, _decision_time)),
        strategic_consistency=_rounded_mean(_collect(records, _strategic_consistency)),
        error_rate=_rounded_mean(_collect(records, _error_rate, keep=lambda v: v >= 0)),
        adaptation_speed=_rounded_mean(_collect(records, _adaptation_speed)),
        planning_depth=stats.round1(stats.mean(planning)) if planning else 0.0,
        impulse_control=_rounded_mean(_collect(records, _impulse_control)),
        focus_stability=_rounded_mean(_collect(records, _focus_stability)),
        learning_rate=learning_rate(records),
    )
