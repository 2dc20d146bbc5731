"""Circadian sync inputs and outputs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


def _known(cls, data: dict) -> dict:
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


# ── Inputs ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuizResponses:
    """Schedule survey answers (enumerated strings, see survey_tables.yaml)."""
    natural_wake: str = ""      # Before 8 AM | 8–10 AM | After 10 AM
    focus_time: str = ""        # Morning | Afternoon | Evening
    test_time: str = ""         # Morning | Midday | Evening
    school_start: str = ""      # Before 7:30 AM | 7:30–8:00 AM | After 8:00 AM
    homework_time: str = ""     # Right after school | After dinner | Late at night | Depends
    wake_school: Optional[str] = None   # Before 6 AM | 6–6:59 AM | 7–7:59 AM | 8 AM or later
    wake_feel: Optional[str] = None     # Wide awake | A bit slow | Super groggy
    bed_weekend: Optional[str] = None   # Before 10 PM | 10 PM–Midnight | After Midnight

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> QuizResponses:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class SleepEntry:
    date: str                   # YYYY-MM-DD
    bed_time: str               # HH:MM
    wake_time: str              # HH:MM
    waking_events: int = 0
    sleep_quality_score: Optional[float] = None  # 0-100

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SleepEntry:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class RhythmSample:
    """One time-stamped performance observation for cosinor fitting."""
    hour: float                 # local fractional hour [0, 24)
    score: float                # normalized 0.0-1.0
    domain: str
    timestamp: float = 0.0      # epoch seconds


# ── Outputs ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CosinorResult:
    amplitude: float = 0.0
    acrophase: float = 12.0     # hour of peak [0, 24)
    reliability: float = 0.0    # 0.0 - rho_max
    r_squared: float = 0.0


NEUTRAL_COSINOR = CosinorResult()


@dataclass(frozen=True)
class SleepMetrics:
    average_quality: float = 0.0
    consistency: float = 0.0
    duration: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> SleepMetrics:
        return cls(**_known(cls, data))


@dataclass(frozen=True)
class AlignmentPair:
    school: float = 0.0
    study: float = 0.0


@dataclass(frozen=True)
class AdaptiveComponents:
    observed_alignment: AlignmentPair = field(default_factory=AlignmentPair)
    predicted_alignment: AlignmentPair = field(default_factory=AlignmentPair)
    adaptation_level: float = 0.0               # mean cosinor reliability
    domain_reliability: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Chronotype:
    chronotype: str = "Bear"    # Lion | Bear | Wolf | Dolphin
    out_of_sync: int = 0        # 0-100


@dataclass(frozen=True)
class SyncTrend:
    weekly_trend: str = "stable"
    projected_score: int = 50


@dataclass(frozen=True)
class SyncResult:
    sync_score: int                     # 0-100
    school_alignment: int               # 0-100
    study_alignment: int                # 0-100
    learning_phase: float               # hour [0, 24)
    social_jetlag_penalty: float        # 0.0-1.0
    adaptive_components: AdaptiveComponents
    sleep_metrics: SleepMetrics
    learning_timeline: list[float]      # 96 x 15-minute bins
    chronotype: Chronotype
    trend_analysis: SyncTrend = field(default_factory=SyncTrend)
    computed_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SyncResult:
        adaptive = data.get("adaptive_components") or {}
        return cls(
            sync_score=int(data.get("sync_score", 0)),
            school_alignment=int(data.get("school_alignment", 0)),
            study_alignment=int(data.get("study_alignment", 0)),
            learning_phase=float(data.get("learning_phase", 12.0)),
            social_jetlag_penalty=float(data.get("social_jetlag_penalty", 1.0)),
            adaptive_components=AdaptiveComponents(
                observed_alignment=AlignmentPair(**(adaptive.get("observed_alignment") or {})),
                predicted_alignment=AlignmentPair(**(adaptive.get("predicted_alignment") or {})),
                adaptation_level=float(adaptive.get("adaptation_level", 0.0)),
                domain_reliability=dict(adaptive.get("domain_reliability") or {}),
            ),
            sleep_metrics=SleepMetrics.from_dict(data.get("sleep_metrics") or {}),
            learning_timeline=[float(v) for v in data.get("learning_timeline") or []],
            chronotype=Chronotype(**(data.get("chronotype") or {})),
            trend_analysis=SyncTrend(**(data.get("trend_analysis") or {})),
            computed_at=str(data.get("computed_at", "")),
        )
