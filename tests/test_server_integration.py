"""Integration tests for FastAPI server endpoints.

Uses httpx.AsyncClient with ASGITransport to test the REST API
without starting a real server. Redis is patched to use fakeredis.
"""

import pytest
import fakeredis
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from httpx import AsyncClient, ASGITransport

from cogsync.data_pipeline.store import ProfileStore
from cogsync.engine.errors import ProfileComputationError


# ── Patch Redis before importing the server ──────────────────────────────

@pytest.fixture
def fake_redis():
    """Create a shared fakeredis instance for this test."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def patched_app(fake_redis):
    """Import and patch the FastAPI app to use fakeredis everywhere."""
    with (
        patch("cogsync.server._get_redis", return_value=fake_redis),
        patch("cogsync.data_pipeline.store._get_redis", return_value=fake_redis),
    ):
        from cogsync.server import app
        yield app


@pytest.fixture
async def client(patched_app):
    transport = ASGITransport(app=patched_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _seed_person(r, make_record, person_id, accuracy):
    store = ProfileStore(r)
    # recompute through the API runs against the wall clock
    recent = datetime.now(timezone.utc) - timedelta(hours=1)
    store.add_records(person_id, "memoryMatchSessions", [
        make_record(at=recent, attempt=i, performance={"accuracy": accuracy})
        for i in range(3)
    ])
    return store


SURVEY = {
    "natural_wake": "Before 8 AM",
    "focus_time": "Morning",
    "test_time": "Morning",
    "school_start": "7:30–8:00 AM",
    "homework_time": "Right after school",
}


# ═══════════════════════════════════════════════════════════════════════════
# Health Check
# ═══════════════════════════════════════════════════════════════════════════


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "redis": True}


# ═══════════════════════════════════════════════════════════════════════════
# Profiles
# ═══════════════════════════════════════════════════════════════════════════


class TestProfiles:
    async def test_unknown_profile_404(self, client):
        resp = await client.get("/api/profile/nobody")
        assert resp.status_code == 404

    async def test_refresh_then_read(self, client, fake_redis, make_record):
        _seed_person(fake_redis, make_record, "kid-1", 80)

        resp = await client.post("/api/profile/kid-1/refresh")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "recomputed"
        assert body["sync"] is None
        assert body["profile"]["person_id"] == "kid-1"

        resp = await client.get("/api/profile/kid-1")
        assert resp.status_code == 200
        assert resp.json()["domains"]["memory"]["current"] == body["profile"]["domains"]["memory"]["current"]

    async def test_refresh_empty_person_gives_neutral_profile(self, client):
        resp = await client.post("/api/profile/new-kid/refresh")
        assert resp.status_code == 200
        profile = resp.json()["profile"]
        assert set(profile["percentiles"].values()) == {50}
        assert profile["data_quality"]["reliability"] == 0

    async def test_refresh_failure_is_500_with_reason(self, client):
        error = ProfileComputationError("kid-1", "storage offline")
        with patch("cogsync.server.recompute_person", side_effect=error):
            resp = await client.post("/api/profile/kid-1/refresh")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "storage offline"


# ═══════════════════════════════════════════════════════════════════════════
# Sync
# ═══════════════════════════════════════════════════════════════════════════


class TestSync:
    async def test_sync_missing_404(self, client):
        resp = await client.get("/api/sync/nobody")
        assert resp.status_code == 404

    async def test_survey_then_sync(self, client, fake_redis, make_record):
        _seed_person(fake_redis, make_record, "kid-1", 80)
        resp = await client.put("/api/survey/kid-1", json=SURVEY)
        assert resp.status_code == 200
        assert resp.json()["survey"]["natural_wake"] == "Before 8 AM"

        resp = await client.post("/api/profile/kid-1/refresh")
        assert resp.json()["sync"] is not None

        resp = await client.get("/api/sync/kid-1")
        assert resp.status_code == 200
        body = resp.json()
        assert 0 <= body["sync"]["sync_score"] <= 100
        assert len(body["sync"]["learning_timeline"]) == 96
        assert body["trend"] == {"trend": "stable", "change": 0.0}


# ═══════════════════════════════════════════════════════════════════════════
# Leaderboard and batch
# ═══════════════════════════════════════════════════════════════════════════


class TestLeaderboard:
    async def test_unknown_domain_400(self, client):
        resp = await client.get("/api/leaderboard/charisma")
        assert resp.status_code == 400
        assert "memory" in resp.json()["detail"]

    async def test_limit_bounds(self, client):
        resp = await client.get("/api/leaderboard/memory", params={"limit": 0})
        assert resp.status_code == 422

    async def test_ranking_after_batch(self, client, fake_redis, make_record):
        for pid, acc in (("a", 70), ("b", 90), ("c", 80)):
            _seed_person(fake_redis, make_record, pid, acc)

        resp = await client.post("/api/recompute")
        assert resp.status_code == 200
        assert resp.json() == {"succeeded": 3, "failed": 0, "failed_person_ids": []}

        resp = await client.get("/api/leaderboard/memory", params={"limit": 2})
        board = resp.json()
        assert board["total_users"] == 3
        assert [e["person_id"] for e in board["entries"]] == ["b", "c"]
        assert board["entries"][0]["rank"] == 1


# ═══════════════════════════════════════════════════════════════════════════
# Ingestion
# ═══════════════════════════════════════════════════════════════════════════


class TestIngestion:
    async def test_records(self, client, fake_redis, make_record):
        payload = {"records": [make_record(attempt=i, performance={"quizAccuracy": 70}) for i in range(2)]}
        resp = await client.post("/api/records/kid-1/memoryTest", json=payload)
        assert resp.status_code == 200
        assert resp.json()["stored"] == 2
        assert fake_redis.zcard("records:kid-1:memoryTest") == 2

    async def test_unknown_activity_400(self, client):
        resp = await client.post("/api/records/kid-1/fortnite", json={"records": [{}]})
        assert resp.status_code == 400

    async def test_sleep_log(self, client, fake_redis):
        payload = {"entries": [
            {"date": "2026-03-09", "bed_time": "23:00", "wake_time": "07:00", "waking_events": 1},
        ]}
        resp = await client.post("/api/sleep/kid-1", json=payload)
        assert resp.status_code == 200
        assert resp.json()["stored"] == 1
        assert fake_redis.llen("sleep:kid-1") == 1

    async def test_sleep_log_bad_clock_400(self, client, fake_redis):
        payload = {"entries": [{"date": "2026-03-09", "bed_time": "late", "wake_time": "07:00"}]}
        resp = await client.post("/api/sleep/kid-1", json=payload)
        assert resp.status_code == 400
        assert fake_redis.llen("sleep:kid-1") == 0
