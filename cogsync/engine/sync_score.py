"""Sync Score Calculator.

Blends a survey-derived circadian model with the behavioural cosinor fits
into one 0-100 alignment score:

1. theoretical learning phase from the survey answers
2. learning-readiness curve L(t) and its mean over the school and
   homework windows
3. observed alignment from rhythm samples inside the same windows
4. social-jetlag penalty from the natural vs schedule-imposed midsleep
5. reliability-weighted blend, sleep-quality nudge, 96-bin timeline,
   chronotype label and short-term trend

Reliability is the mean cosinor reliability over the five cognitive
domains, so a new user scores on the survey alone and an established
user mostly on observed behaviour, with no mode switch in between.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from cogsync.config.mappings import COGNITIVE_DOMAINS, SurveyTables, load_survey_tables
from cogsync.engine import stats
from cogsync.engine.cosinor import OMEGA, fit_all_domains
from cogsync.engine.sleep import calculate_sleep_metrics
from cogsync.models.sync import (
    AdaptiveComponents,
    AlignmentPair,
    Chronotype,
    CosinorResult,
    QuizResponses,
    RhythmSample,
    SleepEntry,
    SleepMetrics,
    SyncResult,
    SyncTrend,
)

# Readiness curve
DIP_CENTER = 17.0
DIP_SIGMA = 2.0
DIP_WEIGHT = 0.2
INERTIA_HOURS = 1.0
WINDOW_SAMPLES = 60

# Jetlag and blend
JETLAG_K = 0.03
CONSISTENCY_FLOOR = 0.8
SCHOOL_WEIGHT = 0.7
STUDY_WEIGHT = 0.3
SLEEP_QUALITY_PIVOT = 70.0
SLEEP_QUALITY_SLOPE = 0.1

# Timeline and trend
TIMELINE_BINS = 96
TIMELINE_MIN_RELIABILITY = 0.1
TREND_BLOCK = 7
TREND_THRESHOLD = 0.05
TREND_PROJECTION_STEP = 5
HISTORY_BLOCK = 5
HISTORY_THRESHOLD = 5.0


class TrendDirection:
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class Window:
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration

    def contains(self, hour: float) -> bool:
        return self.start <= hour <= self.end


def jetlag_penalty(delta_hours: float) -> float:
    """Gaussian decay in the midsleep shift, 1.0 at no shift."""
    delta = abs(delta_hours) % 24
    if delta > 12:
        delta = 24 - delta
    return math.exp(-JETLAG_K * delta * delta)


def chronotype_for_phase(phase: float) -> Chronotype:
    if phase < 10:
        label, off = "Lion", abs(phase - 8) * 5
    elif phase < 14:
        label, off = "Bear", abs(phase - 12) * 4
    elif phase < 18:
        label, off = "Wolf", abs(phase - 16) * 5
    else:
        label, off = "Dolphin", min(abs(phase - 20), abs(phase - 6)) * 6
    return Chronotype(chronotype=label, out_of_sync=round(stats.clamp(off, 0, 100)))


def observed_alignment(samples: Iterable[RhythmSample], window: Window) -> float:
    """Logistic of the mean sample score inside *window*."""
    inside = [smp.score for smp in samples if window.contains(smp.hour)]
    return stats.sigmoid(stats.mean(inside))


def trend_analysis(samples: Sequence[RhythmSample]) -> SyncTrend:
    if len(samples) < TREND_BLOCK:
        return SyncTrend()
    ordered = sorted(samples, key=lambda smp: smp.timestamp)
    recent = stats.mean([smp.score for smp in ordered[-TREND_BLOCK:]])
    previous_block = ordered[-2 * TREND_BLOCK:-TREND_BLOCK]
    previous = stats.mean([smp.score for smp in previous_block]) if previous_block else recent

    if recent > previous + TREND_THRESHOLD:
        direction, step = TrendDirection.IMPROVING, 1
    elif recent < previous - TREND_THRESHOLD:
        direction, step = TrendDirection.DECLINING, -1
    else:
        direction, step = TrendDirection.STABLE, 0
    projected = round(stats.clamp(round(recent * 100 + step * TREND_PROJECTION_STEP), 0, 100))
    return SyncTrend(weekly_trend=direction, projected_score=projected)


@dataclass(frozen=True)
class HistoryTrend:
    trend: str = TrendDirection.STABLE
    change: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"trend": self.trend, "change": self.change}


def _history_score(entry: Any) -> float:
    if isinstance(entry, SyncResult):
        return float(entry.sync_score)
    if isinstance(entry, Mapping):
        return float(entry.get("sync_score", 0))
    return float(entry)


def sync_score_trend(history: Sequence[Any]) -> HistoryTrend:
    """Trend over stored sync results, newest first."""
    if len(history) < 2:
        return HistoryTrend()
    recent = [_history_score(e) for e in history[:HISTORY_BLOCK]]
    older = [_history_score(e) for e in history[HISTORY_BLOCK:2 * HISTORY_BLOCK]]
    if not older:
        return HistoryTrend()
    change = stats.mean(recent) - stats.mean(older)
    if change > HISTORY_THRESHOLD:
        trend = TrendDirection.IMPROVING
    elif change < -HISTORY_THRESHOLD:
        trend = TrendDirection.DECLINING
    else:
        trend = TrendDirection.STABLE
    return HistoryTrend(trend=trend, change=round(change, 2))


# ═══════════════════════════════════════════════════════════════════════════
# Calculator
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SyncScoreCalculator:
    """Stateless calculator bound to one set of survey lookup tables."""

    tables: SurveyTables = field(default_factory=load_survey_tables)
    domains: tuple[str, ...] = COGNITIVE_DOMAINS

    # ── Survey mapping ──

    def natural_wake(self, responses: QuizResponses) -> float:
        return self.tables.lookup(self.tables.natural_wake, responses.natural_wake)

    def school_wake(self, responses: QuizResponses) -> Optional[float]:
        if not responses.wake_school:
            return None
        return self.tables.lookup(self.tables.school_wake, responses.wake_school)

    def base_phase(self, responses: QuizResponses) -> float:
        t = self.tables
        phase = (
            self.natural_wake(responses)
            + t.focus_weight * t.lookup(t.focus_offset, responses.focus_time)
            + t.test_weight * t.lookup(t.test_offset, responses.test_time)
        )
        return phase % 24

    def theoretical_phase(self, responses: QuizResponses) -> float:
        """Base phase nudged by morning grogginess and weekend bedtime."""
        phase = self.base_phase(responses)
        phase += self.tables.wake_feel_nudge.get(responses.wake_feel or "", 0.0)
        phase += self.tables.bed_weekend_nudge.get(responses.bed_weekend or "", 0.0)
        return (phase + 24) % 24

    def school_window(self, responses: QuizResponses) -> Window:
        start = self.tables.lookup(self.tables.school_start, responses.school_start)
        return Window(start=start, duration=self.tables.school_duration)

    def homework_window(self, responses: QuizResponses, school_end: float) -> Window:
        rule = self.tables.lookup(self.tables.homework, responses.homework_time)
        start, duration = rule.window(school_end)
        return Window(start=start, duration=duration)

    # ── Readiness ──

    def learning_readiness(self, t: float, phase: float, wake_time: Optional[float] = None) -> float:
        circadian = 0.5 * (1 + math.cos(OMEGA * (t - phase)))
        dip = math.exp(-((t - DIP_CENTER) ** 2) / (2 * DIP_SIGMA ** 2))
        inertia = 0.0 if wake_time is not None and wake_time <= t < wake_time + INERTIA_HOURS else 1.0
        value = inertia * ((1 - DIP_WEIGHT) * circadian + DIP_WEIGHT * dip)
        return stats.clamp(value, 0.0, 1.0)

    def mean_readiness(self, window: Window, phase: float, wake_time: Optional[float] = None) -> float:
        step = window.duration / WINDOW_SAMPLES
        total = sum(
            self.learning_readiness((window.start + i * step) % 24, phase, wake_time)
            for i in range(WINDOW_SAMPLES)
        )
        return total / WINDOW_SAMPLES

    # ── Jetlag ──

    def social_jetlag_penalty(self, responses: QuizResponses, sleep: Optional[SleepMetrics] = None) -> float:
        natural = self.natural_wake(responses)
        imposed = self.school_wake(responses)
        if imposed is None:
            imposed = natural
        need = self.tables.sleep_need_hours
        natural_mid = (natural - need + 24) % 24
        actual_mid = (imposed - need + 24) % 24
        penalty = jetlag_penalty(actual_mid - natural_mid)
        if sleep is not None and sleep.consistency > 0:
            penalty *= CONSISTENCY_FLOOR + (1 - CONSISTENCY_FLOOR) * sleep.consistency / 100
        return stats.clamp(penalty, 0.0, 1.0)

    # ── Timeline ──

    def learning_timeline(
        self,
        phase: float,
        fits: Mapping[str, CosinorResult],
        wake_time: Optional[float] = None,
    ) -> list[float]:
        hours = [(i * 24 / TIMELINE_BINS) % 24 for i in range(TIMELINE_BINS)]
        theoretical = [self.learning_readiness(h, phase, wake_time) for h in hours]
        reliability = stats.mean([f.reliability for f in fits.values()])
        if reliability < TIMELINE_MIN_RELIABILITY:
            return [round(v, 4) for v in theoretical]

        trusted = [f for f in fits.values() if f.reliability > 0]
        weight_sum = sum(f.reliability for f in trusted)
        timeline = []
        for hour, theory in zip(hours, theoretical):
            observed = sum(
                f.reliability * stats.clamp(
                    0.5 * (1 + f.amplitude * math.cos(OMEGA * (hour - f.acrophase))), 0.0, 1.0)
                for f in trusted
            ) / weight_sum
            blended = (1 - reliability) * theory + reliability * observed
            timeline.append(round(stats.clamp(blended, 0.0, 1.0), 4))
        return timeline

    # ── Orchestration ──

    def calculate(
        self,
        responses: QuizResponses,
        samples: Sequence[RhythmSample] = (),
        sleep_entries: Iterable[SleepEntry] = (),
        now: Optional[datetime] = None,
    ) -> SyncResult:
        now = now or datetime.now(timezone.utc)
        samples = list(samples)

        phase = self.theoretical_phase(responses)
        wake_time = self.school_wake(responses)
        school = self.school_window(responses)
        study = self.homework_window(responses, school.end)

        predicted = AlignmentPair(
            school=self.mean_readiness(school, phase, wake_time),
            study=self.mean_readiness(study, phase, wake_time),
        )
        observed = AlignmentPair(
            school=observed_alignment(samples, school),
            study=observed_alignment(samples, study),
        )

        fits = fit_all_domains(samples, self.domains)
        reliability = stats.mean([f.reliability for f in fits.values()])

        sleep = calculate_sleep_metrics(sleep_entries)
        penalty = self.social_jetlag_penalty(responses, sleep)

        predicted_score = SCHOOL_WEIGHT * predicted.school + STUDY_WEIGHT * predicted.study
        observed_score = SCHOOL_WEIGHT * observed.school + STUDY_WEIGHT * observed.study
        blended = (1 - reliability) * predicted_score + reliability * observed_score
        score = float(round(100 * penalty * blended))
        if sleep.average_quality > 0:
            score += (sleep.average_quality - SLEEP_QUALITY_PIVOT) * SLEEP_QUALITY_SLOPE

        return SyncResult(
            sync_score=int(stats.clamp(round(score), 0, 100)),
            school_alignment=round(stats.clamp(predicted.school, 0.0, 1.0) * 100),
            study_alignment=round(stats.clamp(predicted.study, 0.0, 1.0) * 100),
            learning_phase=stats.round1(phase) % 24,
            social_jetlag_penalty=round(penalty, 3),
            adaptive_components=AdaptiveComponents(
                observed_alignment=AlignmentPair(round(observed.school, 4), round(observed.study, 4)),
                predicted_alignment=AlignmentPair(round(predicted.school, 4), round(predicted.study, 4)),
                adaptation_level=round(reliability, 4),
                domain_reliability={d: round(f.reliability, 4) for d, f in fits.items()},
            ),
            sleep_metrics=sleep,
            learning_timeline=self.learning_timeline(phase, fits, wake_time),
            chronotype=chronotype_for_phase(phase),
            trend_analysis=trend_analysis(samples),
            computed_at=now.isoformat(),
        )
