"""Tests for metric extraction, timestamp resolution and the stats helpers."""

import math
import pytest
from datetime import datetime, timezone

from cogsync.engine import stats
from cogsync.engine.extraction import (
    day_of_week,
    extract_metric,
    first_positive,
    is_valid_sample,
    local_hour,
    metric_or_zero,
    record_timestamp,
)


# ═══════════════════════════════════════════════════════════════════════════
# Metric Extractor
# ═══════════════════════════════════════════════════════════════════════════


class TestExtractMetric:
    def test_nested_numeric_value(self):
        rec = {"performance": {"accuracy": 82.5}}
        assert extract_metric(rec, "performance.accuracy") == 82.5

    def test_missing_segment_is_absent(self):
        assert extract_metric({"performance": {}}, "performance.accuracy") is None

    def test_null_along_path_is_absent(self):
        assert extract_metric({"performance": None}, "performance.accuracy") is None

    def test_percent_string_parses_prefix(self):
        assert extract_metric({"stats": {"rate": "85.5%"}}, "stats.rate") == 85.5

    def test_non_numeric_string_is_absent(self):
        assert extract_metric({"stats": {"rate": "fast"}}, "stats.rate") is None

    def test_bad_percent_string_is_absent(self):
        assert extract_metric({"stats": {"rate": "abc%"}}, "stats.rate") is None

    def test_boolean_is_absent(self):
        assert extract_metric({"flag": True}, "flag") is None

    def test_measured_zero_differs_from_absent(self):
        assert extract_metric({"score": 0}, "score") == 0.0
        assert extract_metric({}, "score") is None

    def test_metric_or_zero_collapses_absent(self):
        assert metric_or_zero({}, "a.b.c") == 0.0
        assert metric_or_zero("not a record", "a") == 0.0

    def test_first_positive_follows_chain(self):
        rec = {"performance": {"accuracy": 0, "winRate": 64}}
        assert first_positive(rec, ("performance.accuracy", "performance.winRate")) == 64

    def test_valid_sample_rejects_zero_and_nan(self):
        assert not is_valid_sample(0.0)
        assert not is_valid_sample(-3.0)
        assert not is_valid_sample(float("nan"))
        assert not is_valid_sample(None)
        assert is_valid_sample(0.1)


class TestRecordTimestamp:
    def test_epoch_millis(self):
        ts = record_timestamp({"createdAt": 1773144000000})
        assert ts == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_iso_string(self):
        ts = record_timestamp({"createdAt": "2026-03-10T12:00:00Z"})
        assert ts == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_firestore_seconds_object(self):
        ts = record_timestamp({"createdAt": {"_seconds": 1773144000, "_nanoseconds": 0}})
        assert ts == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_falls_back_to_session_start(self):
        rec = {"sessionOverview": {"sessionStart": 1773144000000}}
        assert record_timestamp(rec) == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_no_timestamp(self):
        assert record_timestamp({"performance": {"accuracy": 80}}) is None

    def test_local_hour_and_day_use_zone(self):
        ts = datetime(2026, 3, 10, 3, 30, tzinfo=timezone.utc)  # Tuesday
        assert local_hour(ts, "UTC") == pytest.approx(3.5)
        assert day_of_week(ts, "UTC") == 2
        # 03:30Z is the previous evening in New York (EDT from 8 March)
        assert local_hour(ts, "America/New_York") == pytest.approx(23.5)
        assert day_of_week(ts, "America/New_York") == 1


# ═══════════════════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════════════════


class TestStats:
    def test_constant_series_is_fully_consistent(self):
        assert stats.coefficient_of_variation([10, 10, 10]) == 0
        assert stats.consistency([10, 10, 10]) == 100

    def test_consistency_never_negative(self):
        assert stats.consistency([1, 100, 1, 100]) >= 0

    def test_normalize_midpoint(self):
        assert stats.normalize(50, 0, 100) == 50

    def test_inverse_normalize(self):
        assert stats.inverse_normalize(800, 0, 1000) == pytest.approx(20)

    def test_normalize_clamps(self):
        assert stats.normalize(150, 0, 100) == 100
        assert stats.normalize(-5, 0, 100) == 0
        assert stats.inverse_normalize(2000, 0, 1000) == 0

    def test_degenerate_range_is_neutral(self):
        assert stats.normalize(7, 5, 5) == 50
        assert stats.inverse_normalize(7, 5, 5) == 50

    def test_population_std_dev(self):
        assert stats.std_dev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    def test_empty_inputs(self):
        assert stats.mean([]) == 0
        assert stats.std_dev([]) == 0
        assert stats.coefficient_of_variation([]) == 0
        assert stats.upper_median([]) == 0

    def test_upper_median(self):
        assert stats.upper_median([4, 1, 3, 2]) == 3

    def test_sigmoid_of_zero(self):
        assert stats.sigmoid(0) == 0.5
        assert not math.isnan(stats.sigmoid(-1e6))
