"""Trend Calculator.

Compares the current windowed scores against the single previous profile.
No multi-point history is needed; a missing (or zero) prior value falls
back to the current value, which reads as a neutral 0% change.
"""

from __future__ import annotations

from typing import Mapping, Optional

from cogsync.engine import stats
from cogsync.models.profile import DomainScore, TrendData, Trajectory, UnifiedProfile

TRAJECTORY_THRESHOLD = 5.0  # percent weekly change


def classify_trajectory(weekly_change: float) -> str:
    if weekly_change > TRAJECTORY_THRESHOLD:
        return Trajectory.IMPROVING
    if weekly_change < -TRAJECTORY_THRESHOLD:
        return Trajectory.DECLINING
    return Trajectory.STABLE


def percent_change(current: float, previous: float) -> float:
    return (current - previous) / max(previous, 1) * 100.0


def calculate_trend(current: DomainScore, prior: Optional[DomainScore] = None) -> TrendData:
    prev_7d = (prior.average_7d if prior else 0) or current.average_7d
    prev_30d = (prior.average_30d if prior else 0) or current.average_30d

    weekly = percent_change(current.average_7d, prev_7d)
    monthly = percent_change(current.average_30d, prev_30d)
    yearly = monthly * 12  # linear extrapolation

    recent = [s for s in (current.current, current.average_7d, current.average_30d) if s > 0]
    volatility = stats.std_dev(recent)

    return TrendData(
        weekly_change=stats.round1(weekly),
        monthly_change=stats.round1(monthly),
        yearly_change=stats.round1(yearly),
        trajectory=classify_trajectory(weekly),
        volatility=stats.round1(volatility),
        consistency_score=round(max(0.0, 100.0 - volatility)),
        momentum=stats.round1(weekly - monthly),
    )


def calculate_trends(
    domains: Mapping[str, DomainScore],
    previous: Optional[UnifiedProfile] = None,
) -> dict[str, TrendData]:
    prior_domains = previous.domains if previous is not None else {}
    return {
        name: calculate_trend(score, prior_domains.get(name))
        for name, score in domains.items()
    }
