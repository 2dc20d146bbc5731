"""Unified profile orchestration.

:meth:`ProfileAggregator.build_profile` is a pure function of one
person's records, the previous profile and a population snapshot.  It
reads nothing from storage; :mod:`cogsync.engine.recompute` does the
fetching and writing around it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from cogsync.config.mappings import DomainMapping, PeakPolicy, load_domain_mapping
from cogsync.config.settings import COGSYNC_TIMEZONE
from cogsync.engine.cross_metrics import calculate_cross_metrics
from cogsync.engine.data_quality import assess_data_quality
from cogsync.engine.domain_scores import (
    RecordsByActivity,
    build_contributions,
    calculate_all_domain_scores,
)
from cogsync.engine.extraction import record_timestamp
from cogsync.engine.peak_performance import analyze_peak_performance
from cogsync.engine.percentiles import NEUTRAL_PERCENTILE, calculate_percentiles
from cogsync.engine.trends import calculate_trends
from cogsync.models.profile import (
    DataQualityMetrics,
    DomainScore,
    PeakPerformance,
    TrendData,
    UnifiedProfile,
)

logger = logging.getLogger(__name__)


def _flatten(records_by_activity: RecordsByActivity) -> list[dict[str, Any]]:
    return [rec for recs in records_by_activity.values() for rec in recs]


def _account_age_days(records: Iterable[dict[str, Any]], now: datetime) -> int:
    stamps = [ts for ts in map(record_timestamp, records) if ts is not None]
    if not stamps:
        return 0
    return max(0, (now - min(stamps)).days)


@dataclass(frozen=True)
class ProfileAggregator:
    """Builds UnifiedProfiles against one immutable configuration."""

    mapping: DomainMapping = field(default_factory=load_domain_mapping)
    tz_name: str = COGSYNC_TIMEZONE
    peak_policy: PeakPolicy = field(default_factory=PeakPolicy)

    def empty_profile(
        self,
        person_id: str,
        previous: Optional[UnifiedProfile] = None,
        now: Optional[datetime] = None,
    ) -> UnifiedProfile:
        """Neutral profile for a person with no records at all."""
        now = now or datetime.now(timezone.utc)
        prior = previous.domains if previous is not None else {}
        domains = {}
        for name in self.mapping.domain_names:
            best = prior.get(name)
            domains[name] = DomainScore(
                personal_best=best.personal_best if best else 0,
                personal_best_date=(best.personal_best_date if best else "") or now.isoformat(),
            )
        policy = self.peak_policy
        return UnifiedProfile(
            person_id=person_id,
            domains=domains,
            contributions={},
            trends={name: TrendData() for name in self.mapping.domain_names},
            percentiles={name: NEUTRAL_PERCENTILE for name in self.mapping.domain_names},
            peak_performance=PeakPerformance(
                best_time_of_day=policy.default_hour,
                best_day_of_week=policy.default_day,
                optimal_session_duration=policy.default_session_minutes,
                fatigue_threshold=policy.default_fatigue_threshold,
            ),
            data_quality=DataQualityMetrics(),
            last_updated=now.isoformat(),
        )

    def build_profile(
        self,
        person_id: str,
        records_by_activity: RecordsByActivity,
        previous: Optional[UnifiedProfile] = None,
        population: Optional[Mapping[str, Iterable[float]]] = None,
        now: Optional[datetime] = None,
    ) -> UnifiedProfile:
        """Aggregate one person's records into a fresh profile.

        Args:
            records_by_activity: activity collection -> raw records.
            previous: last stored profile, the baseline for personal
                bests and trends; ``None`` on a first run.
            population: domain -> other people's current scores, or
                ``None`` when the snapshot is unavailable.
        """
        now = now or datetime.now(timezone.utc)
        records = _flatten(records_by_activity)
        logger.info("Aggregating profile for %s from %d records", person_id, len(records))

        if not records:
            return self.empty_profile(person_id, previous, now)
        if previous is None:
            logger.info("No previous profile for %s, seeding baselines from this run", person_id)

        domains = calculate_all_domain_scores(records_by_activity, self.mapping, previous, now)
        return UnifiedProfile(
            person_id=person_id,
            domains=domains,
            metrics=calculate_cross_metrics(dict(records_by_activity)),
            contributions=build_contributions(records_by_activity, self.mapping, now),
            trends=calculate_trends(domains, previous),
            percentiles=calculate_percentiles(domains, population),
            peak_performance=analyze_peak_performance(records, self.tz_name, self.peak_policy),
            data_quality=assess_data_quality(records, domains, now),
            total_sessions=len(records),
            activities_played=sum(1 for recs in records_by_activity.values() if recs),
            account_age_days=_account_age_days(records, now),
            last_updated=now.isoformat(),
        )
