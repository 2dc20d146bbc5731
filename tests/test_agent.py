"""Tests for the Profile Aggregator agent handlers and message models."""

import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from cogsync.agents.aggregator_agent import (
    NO_SYNC_SCORE,
    handle_recompute_request,
    on_demand_recompute,
    periodic_batch,
    run_batch,
)
from cogsync.engine.errors import PopulationUnavailableError, ProfileComputationError
from cogsync.models.messages import BatchCompleted, ProfileRecomputed, RecomputeRequest
from cogsync.models.sync import QuizResponses


def _seed(store, make_record, person_id):
    # handlers recompute against the wall clock
    recent = datetime.now(timezone.utc) - timedelta(hours=2)
    store.add_records(person_id, "memoryMatchSessions", [
        make_record(at=recent, attempt=i, performance={"accuracy": 75}) for i in range(4)
    ])


# ═══════════════════════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════════════════════


class TestMessages:
    def test_request_defaults(self):
        req = RecomputeRequest(person_id="kid-1")
        assert req.requested_by == ""

    def test_reply_roundtrip(self):
        reply = ProfileRecomputed(person_id="kid-1", success=False, message="redis timeout",
                                  reliability=0, sync_score=NO_SYNC_SCORE)
        restored = ProfileRecomputed.parse_raw(reply.json())
        assert restored.person_id == "kid-1"
        assert restored.success is False
        assert restored.message == "redis timeout"
        assert restored.sync_score == -1

    def test_batch_roundtrip(self):
        msg = BatchCompleted(succeeded=3, failed=1, failed_person_ids=["bad"],
                             timestamp="2026-03-10T12:00:00+00:00")
        restored = BatchCompleted.parse_raw(msg.json())
        assert restored.failed_person_ids == ["bad"]
        assert restored.succeeded == 3


# ═══════════════════════════════════════════════════════════════════════════
# On-demand recompute
# ═══════════════════════════════════════════════════════════════════════════


class TestRecomputeRequest:
    def test_success_without_survey(self, store, make_record):
        _seed(store, make_record, "kid-1")
        reply = handle_recompute_request(RecomputeRequest(person_id="kid-1"), store)
        assert reply.success is True
        assert reply.sync_score == NO_SYNC_SCORE
        assert 0 < reply.reliability <= 100
        assert store.load_profile("kid-1") is not None

    def test_success_with_survey(self, store, make_record):
        _seed(store, make_record, "kid-1")
        store.save_survey("kid-1", QuizResponses(natural_wake="8–10 AM", focus_time="Afternoon"))
        reply = handle_recompute_request(RecomputeRequest(person_id="kid-1"), store)
        assert reply.success is True
        assert 0 <= reply.sync_score <= 100

    def test_failure_reports_reason(self, store):
        error = ProfileComputationError("kid-1", "redis timeout")
        with patch("cogsync.agents.aggregator_agent.recompute_person", side_effect=error):
            reply = handle_recompute_request(RecomputeRequest(person_id="kid-1"), store)
        assert reply.success is False
        assert reply.message == "redis timeout"
        assert reply.sync_score == NO_SYNC_SCORE


# ═══════════════════════════════════════════════════════════════════════════
# Periodic batch
# ═══════════════════════════════════════════════════════════════════════════


class TestBatch:
    def test_summary_message(self, store, make_record):
        for pid in ("a", "b"):
            _seed(store, make_record, pid)
        result = run_batch(store)
        assert isinstance(result, BatchCompleted)
        assert result.succeeded == 2
        assert result.failed == 0
        assert result.failed_person_ids == []

    def test_unenumerable_population_aborts(self, store, monkeypatch):
        def boom():
            raise PopulationUnavailableError("redis down")

        monkeypatch.setattr(store, "list_persons", boom)
        assert run_batch(store) is None


# ═══════════════════════════════════════════════════════════════════════════
# Serialization
# ═══════════════════════════════════════════════════════════════════════════


class TestSerialization:
    async def test_request_waits_for_running_recompute(self, store, make_record):
        _seed(store, make_record, "kid-1")
        lock = asyncio.Lock()
        await lock.acquire()

        task = asyncio.create_task(on_demand_recompute(lock, RecomputeRequest(person_id="kid-1"), store))
        await asyncio.sleep(0.05)
        assert not task.done()
        assert store.load_profile("kid-1") is None

        lock.release()
        reply = await task
        assert reply.success is True
        assert store.load_profile("kid-1") is not None

    async def test_batch_waits_for_running_recompute(self, store, make_record):
        _seed(store, make_record, "kid-1")
        lock = asyncio.Lock()
        await lock.acquire()

        task = asyncio.create_task(periodic_batch(lock, store))
        await asyncio.sleep(0.05)
        assert not task.done()

        lock.release()
        result = await task
        assert result.succeeded == 1

    async def test_batch_and_request_never_overlap(self, store):
        active = 0
        peak = 0
        guard = threading.Lock()

        def slow(result):
            def run(*args):
                nonlocal active, peak
                with guard:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.05)
                with guard:
                    active -= 1
                return result
            return run

        reply = ProfileRecomputed(person_id="kid-1", success=True, message="ok",
                                  reliability=50, sync_score=NO_SYNC_SCORE)
        summary = BatchCompleted(succeeded=1, failed=0, failed_person_ids=[],
                                 timestamp="2026-03-10T12:00:00+00:00")
        lock = asyncio.Lock()
        with (
            patch("cogsync.agents.aggregator_agent.run_batch", side_effect=slow(summary)),
            patch("cogsync.agents.aggregator_agent.handle_recompute_request", side_effect=slow(reply)),
        ):
            results = await asyncio.gather(
                periodic_batch(lock, store),
                on_demand_recompute(lock, RecomputeRequest(person_id="kid-1"), store),
                on_demand_recompute(lock, RecomputeRequest(person_id="kid-1"), store),
            )

        assert peak == 1
        assert results[0] is summary
        assert results[1] is reply
