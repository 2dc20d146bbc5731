"""Immutable configuration tables.

The domain mapping and the survey lookup tables live in YAML next to this
module and are parsed once into frozen dataclasses.  Nothing here is
mutated at runtime; callers that need an alternate configuration (tests,
experiments) load their own copy from a different path and pass it in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from cogsync.config.settings import DOMAIN_MAPPING_PATH, SURVEY_TABLES_PATH

COGNITIVE_DOMAINS: tuple[str, ...] = (
    "memory",
    "attention",
    "recall",
    "problemSolving",
    "creativity",
)


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


# ═══════════════════════════════════════════════════════════════════════════
# Domain mapping
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MetricSource:
    """One (activity, metric) input to a domain score."""

    activity: str
    metric: str
    weight: float
    inverse: bool = False
    normalize_range: tuple[float, float] | None = None
    reliability: float | None = None  # overrides CV-derived reliability

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MetricSource:
        rng = data.get("normalize")
        if rng is not None:
            if len(rng) != 2:
                raise ValueError(f"normalize range must be [min, max], got {rng!r}")
            rng = (float(rng[0]), float(rng[1]))
        reliability = data.get("reliability")
        return cls(
            activity=str(data["activity"]),
            metric=str(data["metric"]),
            weight=float(data["weight"]),
            inverse=bool(data.get("inverse", False)),
            normalize_range=rng,
            reliability=float(reliability) if reliability is not None else None,
        )


@dataclass(frozen=True)
class DomainMapping:
    """domain -> sources, the collection list, and the rhythm table."""

    domains: Mapping[str, tuple[MetricSource, ...]]
    collections: tuple[str, ...]
    rhythm: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def domain_names(self) -> tuple[str, ...]:
        return tuple(self.domains)

    def sources(self, domain: str) -> tuple[MetricSource, ...]:
        return self.domains.get(domain, ())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DomainMapping:
        domains = {
            name: tuple(MetricSource.from_dict(s) for s in (sources or []))
            for name, sources in (data.get("domains") or {}).items()
        }
        collections = list(data.get("collections") or [])
        # Every mapped activity must be fetched, even if the list omits it
        for sources in domains.values():
            for s in sources:
                if s.activity not in collections:
                    collections.append(s.activity)
        rhythm = {str(k): str(v) for k, v in (data.get("rhythm") or {}).items()}
        return cls(
            domains=MappingProxyType(domains),
            collections=tuple(collections),
            rhythm=MappingProxyType(rhythm),
        )


@lru_cache(maxsize=8)
def _cached_domain_mapping(path: Path) -> DomainMapping:
    return DomainMapping.from_dict(_load_yaml(path))


def load_domain_mapping(path: Path | str | None = None) -> DomainMapping:
    """Load the domain mapping (cached per path)."""
    return _cached_domain_mapping(Path(path or DOMAIN_MAPPING_PATH).resolve())


# ═══════════════════════════════════════════════════════════════════════════
# Survey tables
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HomeworkRule:
    duration: float
    start: float | None = None          # absolute hour
    after_school: float | None = None   # hours after the school window ends

    def window(self, school_end: float) -> tuple[float, float]:
        if self.start is not None:
            return self.start, self.duration
        return school_end + (self.after_school or 0.0), self.duration


@dataclass(frozen=True)
class SurveyTables:
    natural_wake: Mapping[str, float]
    focus_offset: Mapping[str, float]
    test_offset: Mapping[str, float]
    school_start: Mapping[str, float]
    school_duration: float
    homework: Mapping[str, HomeworkRule]
    school_wake: Mapping[str, float]
    wake_feel_nudge: Mapping[str, float]
    bed_weekend_nudge: Mapping[str, float]
    focus_weight: float = 0.6
    test_weight: float = 0.4
    sleep_need_hours: float = 8.0

    @staticmethod
    def lookup(table: Mapping[str, Any], answer: str | None) -> Any:
        """Return the table entry for *answer*, else the table default."""
        if answer is not None and answer in table:
            return table[answer]
        return table["default"]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SurveyTables:
        def _hours(name: str) -> Mapping[str, float]:
            return MappingProxyType({str(k): float(v) for k, v in data[name].items()})

        homework = {
            str(k): HomeworkRule(
                duration=float(v["duration"]),
                start=float(v["start"]) if "start" in v else None,
                after_school=float(v["after_school"]) if "after_school" in v else None,
            )
            for k, v in data["homework"].items()
        }
        return cls(
            natural_wake=_hours("natural_wake"),
            focus_offset=_hours("focus_offset"),
            test_offset=_hours("test_offset"),
            school_start=_hours("school_start"),
            school_duration=float(data.get("school_duration", 6.5)),
            homework=MappingProxyType(homework),
            school_wake=_hours("school_wake"),
            wake_feel_nudge=_hours("wake_feel_nudge"),
            bed_weekend_nudge=_hours("bed_weekend_nudge"),
            focus_weight=float(data.get("focus_weight", 0.6)),
            test_weight=float(data.get("test_weight", 0.4)),
            sleep_need_hours=float(data.get("sleep_need_hours", 8.0)),
        )


@lru_cache(maxsize=8)
def _cached_survey_tables(path: Path) -> SurveyTables:
    return SurveyTables.from_dict(_load_yaml(path))


def load_survey_tables(path: Path | str | None = None) -> SurveyTables:
    """Load the survey lookup tables (cached per path)."""
    return _cached_survey_tables(Path(path or SURVEY_TABLES_PATH).resolve())


# ═══════════════════════════════════════════════════════════════════════════
# Peak-performance policy
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PeakPolicy:
    """Heuristic constants for the peak-performance estimate.

    Day numbering is Sunday = 0 ... Saturday = 6.
    """

    default_hour: int = 10
    default_day: int = 2
    default_session_minutes: int = 30
    default_fatigue_threshold: int = 5
    fatigue_divisor: int = 5
    fatigue_min: int = 3
    fatigue_max: int = 10
