"""Unified cognitive profile and its parts.

A profile is built fresh on every recomputation and never mutated after
that; the previous profile is read back only as the baseline for
personal bests and trends.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


class Trajectory:
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


def _known(cls, data: dict) -> dict:
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


@dataclass(frozen=True)
class DomainScore:
    current: int = 0                 # 0-100
    average_7d: int = 0              # 0-100
    average_30d: int = 0             # 0-100
    personal_best: int = 0
    personal_best_date: str = ""     # ISO 8601
    confidence: float = 0.0          # 0.0-1.0

    @classmethod
    def from_dict(cls, data: dict) -> DomainScore:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class GameContribution:
    """How one activity feeds one domain in this run."""
    activity: str
    weight: float
    sample_count: int
    avg_score: int
    reliability: float               # 0.0-1.0, inverse of CV
    last_updated: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> GameContribution:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class TrendData:
    weekly_change: float = 0.0       # percent
    monthly_change: float = 0.0      # percent
    yearly_change: float = 0.0       # percent, extrapolated
    trajectory: str = Trajectory.STABLE
    volatility: float = 0.0
    consistency_score: int = 0       # 0-100
    momentum: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> TrendData:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class PeakPerformance:
    best_time_of_day: int = 10       # hour 0-23
    best_day_of_week: int = 2        # Sunday = 0
    optimal_session_duration: int = 30  # minutes
    fatigue_threshold: int = 5

    @classmethod
    def from_dict(cls, data: dict) -> PeakPerformance:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class CrossActivityMetrics:
    average_decision_time: int = 0
    strategic_consistency: int = 0
    error_rate: int = 0
    adaptation_speed: int = 0
    planning_depth: float = 0.0
    impulse_control: int = 0
    focus_stability: int = 0
    learning_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> CrossActivityMetrics:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class DataQualityMetrics:
    sample_size: int = 0
    recency: int = 999               # days since newest record
    coverage: int = 0                # percent of domains with data
    consistency: int = 0             # mean domain confidence x 100
    reliability: int = 0             # 0-100

    @classmethod
    def from_dict(cls, data: dict) -> DataQualityMetrics:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class UnifiedProfile:
    person_id: str
    domains: dict[str, DomainScore] = field(default_factory=dict)
    metrics: CrossActivityMetrics = field(default_factory=CrossActivityMetrics)
    contributions: dict[str, list[GameContribution]] = field(default_factory=dict)
    trends: dict[str, TrendData] = field(default_factory=dict)
    percentiles: dict[str, int] = field(default_factory=dict)
    peak_performance: PeakPerformance = field(default_factory=PeakPerformance)
    data_quality: DataQualityMetrics = field(default_factory=DataQualityMetrics)
    total_sessions: int = 0
    activities_played: int = 0
    account_age_days: int = 0
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> UnifiedProfile:
        return cls(
            person_id=str(data.get("person_id", "")),
            domains={
                k: DomainScore.from_dict(v) for k, v in (data.get("domains") or {}).items()
            },
            metrics=CrossActivityMetrics.from_dict(data.get("metrics") or {}),
            contributions={
                k: [GameContribution.from_dict(c) for c in v]
                for k, v in (data.get("contributions") or {}).items()
            },
            trends={
                k: TrendData.from_dict(v) for k, v in (data.get("trends") or {}).items()
            },
            percentiles={k: int(v) for k, v in (data.get("percentiles") or {}).items()},
            peak_performance=PeakPerformance.from_dict(data.get("peak_performance") or {}),
            data_quality=DataQualityMetrics.from_dict(data.get("data_quality") or {}),
            total_sessions=int(data.get("total_sessions", 0)),
            activities_played=int(data.get("activities_played", 0)),
            account_age_days=int(data.get("account_age_days", 0)),
            last_updated=str(data.get("last_updated", "")),
        )


@dataclass(frozen=True)
class DailyScores:
    """Domain scores restricted to one local calendar day."""
    date: str                                   # YYYY-MM-DD
    scores: dict[str, int] = field(default_factory=dict)
    computed_from: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
