"""Data Quality Assessor."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from cogsync.engine import stats
from cogsync.engine.extraction import record_timestamp
from cogsync.models.profile import DataQualityMetrics, DomainScore

FULL_SAMPLE_SIZE = 50
RECENCY_HORIZON_DAYS = 30
NO_RECORDS_RECENCY = 999


def assess_data_quality(
    records: Iterable[dict[str, Any]],
    domains: Mapping[str, DomainScore],
    now: Optional[datetime] = None,
) -> DataQualityMetrics:
    """Sample size, recency, coverage and confidence folded into 0-100."""
    now = now or datetime.now(timezone.utc)
    records = list(records)
    sample_size = len(records)

    stamps = [ts for ts in map(record_timestamp, records) if ts is not None]
    if stamps:
        recency = max(0, (now - max(stamps)).days)
    else:
        recency = NO_RECORDS_RECENCY

    with_data = [d for d in domains.values() if d.current > 0]
    coverage = len(with_data) / len(domains) * 100 if domains else 0.0
    avg_confidence = stats.mean([d.confidence for d in with_data])

    factors = [
        min(1.0, sample_size / FULL_SAMPLE_SIZE),
        max(0.0, 1.0 - recency / RECENCY_HORIZON_DAYS),
        coverage / 100.0,
        avg_confidence,
    ]
    return DataQualityMetrics(
        sample_size=sample_size,
        recency=recency,
        coverage=round(coverage),
        consistency=round(avg_confidence * 100),
        reliability=round(stats.clamp(stats.mean(factors) * 100, 0.0, 100.0)),
    )
