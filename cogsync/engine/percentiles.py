"""Percentile Comparator.

Ranks a person's current domain score within a snapshot of other
people's current scores for the same domain.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from cogsync.models.profile import DomainScore

logger = logging.getLogger(__name__)

NEUTRAL_PERCENTILE = 50


def percentile_rank(score: float, population: Iterable[float]) -> int:
    """Share of the population strictly below *score*.

    Zeros in the population are "no data" and excluded.  An empty
    population yields the neutral 50.
    """
    scores = [s for s in population if s > 0]
    if not scores:
        return NEUTRAL_PERCENTILE
    below = sum(1 for s in scores if s < score)
    return round(100.0 * below / len(scores))


def calculate_percentiles(
    domains: Mapping[str, DomainScore],
    population: Optional[Mapping[str, Iterable[float]]],
) -> dict[str, int]:
    """Percentile per domain.

    *population* maps domain -> other people's current scores, or is
    ``None`` when the snapshot could not be read, in which case every
    domain gets the neutral percentile.
    """
    if population is None:
        logger.warning("Population snapshot unavailable, defaulting percentiles to %d",
                       NEUTRAL_PERCENTILE)
        return {name: NEUTRAL_PERCENTILE for name in domains}
    return {
        name: percentile_rank(score.current, population.get(name, ()))
        for name, score in domains.items()
    }
