"""Cosinor Fitter.

Single-harmonic least-squares regression with a fixed 24 h period::

    y(t) = M + a*cos(wt) + b*sin(wt),   w = 2*pi/24

amplitude = sqrt(a^2 + b^2), acrophase = hour of the fitted peak.

Reliability is a shrinkage weight: it grows with sample count and fit
quality and saturates at RHO_MAX, so behavioural data never fully
overrides the survey-derived model.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from cogsync.config.mappings import COGNITIVE_DOMAINS, DomainMapping
from cogsync.engine import stats
from cogsync.engine.extraction import first_positive, local_hour, record_timestamp
from cogsync.models.sync import NEUTRAL_COSINOR, CosinorResult, RhythmSample

OMEGA = 2 * math.pi / 24.0
MIN_SAMPLES = 5
N0 = 20            # sample count at which the size factor reaches 0.5
RHO_MAX = 0.8
SINGULAR_EPS = 1e-10

RHYTHM_SCORE_PATHS = ("performance.accuracy", "performance.winRate", "cognitiveMetrics.overallScore")


def fit_cosinor(hours: Sequence[float], values: Sequence[float]) -> CosinorResult:
    """Fit the 24 h cosinor model to (hour, value) pairs.

    Fewer than MIN_SAMPLES points, or a near-singular design (e.g. every
    sample at the same hour), yields the neutral result.
    """
    n = len(hours)
    if n < MIN_SAMPLES or n != len(values):
        return NEUTRAL_COSINOR

    t = np.asarray(hours, dtype=float)
    y = np.asarray(values, dtype=float)
    c = np.cos(OMEGA * t)
    s = np.sin(OMEGA * t)

    # Centered normal equations for (a, b); the mesor drops out
    yc, cc, sc = y - y.mean(), c - c.mean(), s - s.mean()
    s_cc = float(cc @ cc)
    s_ss = float(sc @ sc)
    s_cs = float(cc @ sc)
    s_yc = float(yc @ cc)
    s_ys = float(yc @ sc)

    denominator = s_cc * s_ss - s_cs * s_cs
    if abs(denominator) < SINGULAR_EPS:
        return NEUTRAL_COSINOR

    a = (s_yc * s_ss - s_ys * s_cs) / denominator
    b = (s_ys * s_cc - s_yc * s_cs) / denominator

    amplitude = math.hypot(a, b)
    acrophase = (math.atan2(b, a) * 24 / (2 * math.pi) + 24) % 24

    predicted = y.mean() + a * c + b * s
    ss_res = float(np.sum((y - predicted) ** 2))
    ss_tot = float(np.sum(yc ** 2))
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    reliability = min(RHO_MAX, (n / (n + N0)) * max(0.0, r_squared))
    return CosinorResult(
        amplitude=amplitude,
        acrophase=acrophase,
        reliability=reliability,
        r_squared=r_squared,
    )


def fit_samples(samples: Iterable[RhythmSample], domain: str) -> CosinorResult:
    own = [smp for smp in samples if smp.domain == domain]
    return fit_cosinor([smp.hour for smp in own], [smp.score for smp in own])


def fit_all_domains(
    samples: Sequence[RhythmSample],
    domains: Sequence[str] = COGNITIVE_DOMAINS,
) -> dict[str, CosinorResult]:
    return {domain: fit_samples(samples, domain) for domain in domains}


def build_rhythm_samples(
    records_by_activity: Mapping[str, list[dict[str, Any]]],
    mapping: DomainMapping,
    tz_name: str = "UTC",
) -> list[RhythmSample]:
    """Time-stamped 0-1 scores for every record of a rhythm-mapped activity."""
    samples: list[RhythmSample] = []
    for activity, domain in mapping.rhythm.items():
        for rec in records_by_activity.get(activity, []):
            ts = record_timestamp(rec)
            if ts is None:
                continue
            raw = first_positive(rec, RHYTHM_SCORE_PATHS)
            if raw <= 0:
                continue
            samples.append(RhythmSample(
                hour=local_hour(ts, tz_name),
                score=stats.clamp(raw / 100.0, 0.0, 1.0),
                domain=domain,
                timestamp=ts.timestamp(),
            ))
    return samples
