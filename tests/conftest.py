"""Shared test fixtures for the cogsync test suite."""

import pytest
import fakeredis
from datetime import datetime, timedelta, timezone

from cogsync.config.mappings import load_domain_mapping, load_survey_tables
from cogsync.data_pipeline.store import ProfileStore


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def store(r, domain_mapping):
    return ProfileStore(r, domain_mapping)


# ── Time Freezing ───────────────────────────────────────────────────────

@pytest.fixture
def frozen_now():
    """Fixed 'now' for deterministic window tests.

    2026-03-10T12:00:00Z, a Tuesday.
    """
    return datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


# ── Configuration ───────────────────────────────────────────────────────

@pytest.fixture
def domain_mapping():
    return load_domain_mapping()


@pytest.fixture
def survey_tables():
    return load_survey_tables()


# ── Record Factories ────────────────────────────────────────────────────

@pytest.fixture
def make_record(frozen_now):
    """Factory for nested activity records with an epoch-millis ``createdAt``.

    Usage:
        rec = make_record(days_ago=2, hour=9, performance={"accuracy": 80})
    """

    def _factory(days_ago: float = 0, hour: float | None = None, at: datetime | None = None, **fields):
        if at is None:
            at = frozen_now - timedelta(days=days_ago)
            if hour is not None:
                at = at.replace(hour=int(hour), minute=int(round((hour % 1) * 60)), second=0)
        record = {"createdAt": int(at.timestamp() * 1000)}
        record.update(fields)
        return record

    return _factory
