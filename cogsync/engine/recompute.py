"""Per-person and batch recomputation.

Both trigger kinds (the periodic agent tick and an on-demand refresh)
end up in :func:`recompute_person`.  Everything is computed in memory
first and written in a single transaction, so a failure never leaves a
partial profile behind.

Concurrent recomputes for the same person are not serialized here; the
caller is responsible for that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from cogsync.config.settings import COGSYNC_TIMEZONE
from cogsync.data_pipeline.store import ProfileStore
from cogsync.engine.aggregator import ProfileAggregator
from cogsync.engine.cosinor import build_rhythm_samples
from cogsync.engine.domain_scores import calculate_daily_scores
from cogsync.engine.errors import ProfileComputationError
from cogsync.engine.extraction import local_time
from cogsync.engine.sync_score import SyncScoreCalculator
from cogsync.models.profile import UnifiedProfile
from cogsync.models.sync import SyncResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecomputeOutcome:
    profile: UnifiedProfile
    sync: Optional[SyncResult] = None


@dataclass
class BatchSummary:
    succeeded: int = 0
    failed: int = 0
    failed_person_ids: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failed_person_ids": list(self.failed_person_ids),
        }


def recompute_person(
    person_id: str,
    store: ProfileStore | None = None,
    aggregator: ProfileAggregator | None = None,
    calculator: SyncScoreCalculator | None = None,
    now: datetime | None = None,
) -> RecomputeOutcome:
    """Rebuild and persist one person's profile and sync result.

    Raises:
        ProfileComputationError: on any failure; nothing is written.
    """
    now = now or datetime.now(timezone.utc)
    store = store or ProfileStore()
    aggregator = aggregator or ProfileAggregator(mapping=store.mapping, tz_name=COGSYNC_TIMEZONE)

    try:
        records = store.fetch_all_records(person_id, now=now)
        previous = store.load_profile(person_id)
        population = store.population_snapshot(exclude=person_id)

        profile = aggregator.build_profile(person_id, records, previous, population, now)
        today = local_time(now, aggregator.tz_name).date()
        daily = calculate_daily_scores(records, aggregator.mapping, today, aggregator.tz_name)

        sync = None
        responses = store.load_survey(person_id)
        if responses is None:
            logger.info("No survey for %s, skipping sync score", person_id)
        else:
            calculator = calculator or SyncScoreCalculator()
            samples = build_rhythm_samples(records, aggregator.mapping, aggregator.tz_name)
            sync = calculator.calculate(responses, samples, store.load_sleep(person_id), now)

        store.save_results(profile, sync, daily)
    except ProfileComputationError:
        raise
    except Exception as exc:
        raise ProfileComputationError(person_id, str(exc) or type(exc).__name__) from exc

    return RecomputeOutcome(profile=profile, sync=sync)


def recompute_all(
    store: ProfileStore | None = None,
    aggregator: ProfileAggregator | None = None,
    calculator: SyncScoreCalculator | None = None,
    now: datetime | None = None,
) -> BatchSummary:
    """Recompute every known person sequentially.

    A per-person failure is logged and counted; the batch continues.
    Only PopulationUnavailableError (from enumerating persons) propagates.
    """
    store = store or ProfileStore()
    aggregator = aggregator or ProfileAggregator(mapping=store.mapping, tz_name=COGSYNC_TIMEZONE)
    calculator = calculator or SyncScoreCalculator()
    summary = BatchSummary()

    for person_id in store.list_persons():
        try:
            recompute_person(person_id, store, aggregator, calculator, now)
        except ProfileComputationError:
            logger.exception("Recompute failed for %s", person_id)
            summary.failed += 1
            summary.failed_person_ids.append(person_id)
        else:
            summary.succeeded += 1

    logger.info("Batch recompute finished: %d succeeded, %d failed",
                summary.succeeded, summary.failed)
    return summary
