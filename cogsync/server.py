"""FastAPI server exposing cognitive profiles and sync scores.

REST endpoints for reading profiles, leaderboards and sync results,
forcing recomputation, and ingesting raw telemetry.

Run: python -m cogsync.server
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from cogsync.config.settings import REDIS_URL, SERVER_HOST, SERVER_PORT
from cogsync.data_pipeline.store import ProfileStore
from cogsync.engine.errors import PopulationUnavailableError, ProfileComputationError
from cogsync.engine.recompute import recompute_all, recompute_person
from cogsync.engine.sleep import parse_clock
from cogsync.engine.sync_score import sync_score_trend
from cogsync.models.sync import QuizResponses, SleepEntry

logger = logging.getLogger(__name__)

app = FastAPI(title="Cogsync", description="Cognitive profile aggregation and circadian sync scoring")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def _store() -> ProfileStore:
    return ProfileStore(_get_redis())


def _require_domain(store: ProfileStore, domain: str) -> None:
    if domain not in store.mapping.domain_names:
        valid = ", ".join(store.mapping.domain_names)
        raise HTTPException(status_code=400, detail=f"Unknown domain '{domain}'. Valid domains: {valid}")


# ── Request Models ───────────────────────────────────────────────────────

class RecordsRequest(BaseModel):
    records: list[dict[str, Any]] = Field(default_factory=list)


class SurveyRequest(BaseModel):
    natural_wake: str = ""
    focus_time: str = ""
    test_time: str = ""
    school_start: str = ""
    homework_time: str = ""
    wake_school: Optional[str] = None
    wake_feel: Optional[str] = None
    bed_weekend: Optional[str] = None


class SleepEntryRequest(BaseModel):
    date: str
    bed_time: str
    wake_time: str
    waking_events: int = 0
    sleep_quality_score: Optional[float] = None


class SleepLogRequest(BaseModel):
    entries: list[SleepEntryRequest]


# ── Health ───────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    r = _get_redis()
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}


# ── Profiles ─────────────────────────────────────────────────────────────

@app.get("/api/profile/{person_id}")
async def get_profile(person_id: str):
    profile = _store().load_profile(person_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No profile for '{person_id}'")
    return profile.to_dict()


@app.post("/api/profile/{person_id}/refresh")
async def refresh_profile(person_id: str):
    """Force an on-demand recompute for one person."""
    try:
        outcome = recompute_person(person_id, _store())
    except ProfileComputationError as exc:
        raise HTTPException(status_code=500, detail=exc.reason)
    return {
        "status": "recomputed",
        "person_id": person_id,
        "profile": outcome.profile.to_dict(),
        "sync": outcome.sync.to_dict() if outcome.sync else None,
    }


@app.get("/api/sync/{person_id}")
async def get_sync(person_id: str):
    store = _store()
    sync = store.load_sync(person_id)
    if sync is None:
        raise HTTPException(status_code=404, detail=f"No sync result for '{person_id}'")
    return {
        "sync": sync.to_dict(),
        "trend": sync_score_trend(store.sync_history(person_id)).to_dict(),
    }


@app.get("/api/leaderboard/{domain}")
async def get_leaderboard(domain: str, limit: int = Query(10, ge=1, le=100)):
    store = _store()
    _require_domain(store, domain)
    return store.leaderboard(domain, limit)


@app.post("/api/recompute")
async def recompute_everyone():
    """Full-population recompute."""
    try:
        summary = recompute_all(_store())
    except PopulationUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return summary.to_dict()


# ── Ingestion ────────────────────────────────────────────────────────────

@app.post("/api/records/{person_id}/{activity}")
async def add_records(person_id: str, activity: str, req: RecordsRequest):
    store = _store()
    if activity not in store.mapping.collections:
        raise HTTPException(status_code=400, detail=f"Unknown activity '{activity}'")
    stored = store.add_records(person_id, activity, req.records)
    return {"person_id": person_id, "activity": activity, "stored": stored}


@app.put("/api/survey/{person_id}")
async def put_survey(person_id: str, req: SurveyRequest):
    responses = QuizResponses.from_dict(req.model_dump())
    _store().save_survey(person_id, responses)
    return {"person_id": person_id, "survey": responses.to_dict()}


@app.post("/api/sleep/{person_id}")
async def add_sleep(person_id: str, req: SleepLogRequest):
    entries = []
    for item in req.entries:
        try:
            parse_clock(item.bed_time)
            parse_clock(item.wake_time)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        entries.append(SleepEntry.from_dict(item.model_dump()))
    stored = _store().add_sleep_entries(person_id, entries)
    return {"person_id": person_id, "stored": stored}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s",
        datefmt="%H:%M:%S",
    )
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT, log_level="info")
