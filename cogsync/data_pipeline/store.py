"""Redis-backed storage for records, profiles and sync results.

Key layout::

    persons                      set     every known person id
    records:{person}:{activity}  zset    score = epoch seconds, member = JSON record
    profile:{person}             string  JSON UnifiedProfile
    profiles                     set     persons with a stored profile
    leaderboard:{domain}         zset    current domain score per person
    survey:{person}              hash    QuizResponses
    sleep:{person}               list    JSON SleepEntry, oldest first
    sync:{person}                string  JSON SyncResult
    sync_history:{person}        list    JSON {sync_score, computed_at}, newest first
    daily:{person}:{YYYY-MM-DD}  string  JSON DailyScores

Reads are lenient: a Redis failure is logged and reported as "no data".
Writing a recompute result happens in one MULTI/EXEC transaction.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import redis

from cogsync.config.mappings import DomainMapping, load_domain_mapping
from cogsync.config.settings import (
    PROFILE_LOOKBACK_DAYS,
    RECORD_FETCH_LIMIT,
    REDIS_URL,
    SYNC_HISTORY_LENGTH,
)
from cogsync.engine.errors import PopulationUnavailableError
from cogsync.engine.extraction import CREATED_AT_FIELD, record_timestamp
from cogsync.models.profile import DailyScores, UnifiedProfile
from cogsync.models.sync import QuizResponses, SleepEntry, SyncResult

logger = logging.getLogger(__name__)

PERSONS_KEY = "persons"
PROFILES_KEY = "profiles"
RECORDS_PREFIX = "records:"
PROFILE_PREFIX = "profile:"
LEADERBOARD_PREFIX = "leaderboard:"
SURVEY_PREFIX = "survey:"
SLEEP_PREFIX = "sleep:"
SYNC_PREFIX = "sync:"
SYNC_HISTORY_PREFIX = "sync_history:"
DAILY_PREFIX = "daily:"


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def records_key(person_id: str, activity: str) -> str:
    return f"{RECORDS_PREFIX}{person_id}:{activity}"


def daily_key(person_id: str, day: str) -> str:
    return f"{DAILY_PREFIX}{person_id}:{day}"


def _decode_records(members: Iterable[str]) -> list[dict[str, Any]]:
    out = []
    for raw in members or []:
        try:
            out.append(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Skipping undecodable record member")
    return out


class ProfileStore:
    """Thin persistence layer over one Redis connection."""

    def __init__(self, r: redis.Redis | None = None, mapping: DomainMapping | None = None):
        self.r = r or _get_redis()
        self.mapping = mapping or load_domain_mapping()

    # ── Persons ──────────────────────────────────────────────────────────

    def add_person(self, person_id: str) -> None:
        self.r.sadd(PERSONS_KEY, person_id)

    def list_persons(self) -> list[str]:
        """All known person ids; failure here is fatal to a batch."""
        try:
            return sorted(self.r.smembers(PERSONS_KEY))
        except redis.RedisError as exc:
            raise PopulationUnavailableError(f"Cannot enumerate persons: {exc}") from exc

    # ── Activity records ─────────────────────────────────────────────────

    def add_record(self, person_id: str, activity: str, record: dict[str, Any]) -> dict[str, Any]:
        """Store one activity record, stamping ``createdAt`` when absent."""
        record = dict(record)
        ts = record_timestamp(record)
        if ts is None:
            ts = datetime.now(timezone.utc)
            record[CREATED_AT_FIELD] = int(ts.timestamp() * 1000)
        pipe = self.r.pipeline()
        pipe.zadd(records_key(person_id, activity), {json.dumps(record, sort_keys=True): ts.timestamp()})
        pipe.sadd(PERSONS_KEY, person_id)
        pipe.execute()
        return record

    def add_records(self, person_id: str, activity: str, records: Iterable[dict[str, Any]]) -> int:
        count = 0
        for rec in records:
            self.add_record(person_id, activity, rec)
            count += 1
        return count

    def fetch_records(
        self,
        person_id: str,
        activity: str,
        days_back: int = PROFILE_LOOKBACK_DAYS,
        limit: int = RECORD_FETCH_LIMIT,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Newest-first records of one activity inside the trailing window."""
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=days_back)).timestamp()
        try:
            members = self.r.zrevrangebyscore(
                records_key(person_id, activity), "+inf", cutoff, start=0, num=limit,
            )
        except redis.RedisError as exc:
            logger.warning("Record fetch failed for %s/%s: %s", person_id, activity, exc)
            return []
        return _decode_records(members)

    def fetch_all_records(
        self,
        person_id: str,
        days_back: int = PROFILE_LOOKBACK_DAYS,
        limit: int = RECORD_FETCH_LIMIT,
        now: datetime | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Every configured collection in one pipelined round trip."""
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=days_back)).timestamp()
        collections = self.mapping.collections
        pipe = self.r.pipeline(transaction=False)
        for activity in collections:
            pipe.zrevrangebyscore(records_key(person_id, activity), "+inf", cutoff, start=0, num=limit)
        try:
            results = pipe.execute()
        except redis.RedisError as exc:
            logger.warning("Record fetch failed for %s: %s", person_id, exc)
            return {activity: [] for activity in collections}
        return {
            activity: _decode_records(members)
            for activity, members in zip(collections, results)
        }

    # ── Survey & sleep ───────────────────────────────────────────────────

    def save_survey(self, person_id: str, responses: QuizResponses) -> None:
        key = f"{SURVEY_PREFIX}{person_id}"
        pipe = self.r.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping=responses.to_dict())
        pipe.sadd(PERSONS_KEY, person_id)
        pipe.execute()

    def load_survey(self, person_id: str) -> Optional[QuizResponses]:
        try:
            data = self.r.hgetall(f"{SURVEY_PREFIX}{person_id}")
        except redis.RedisError as exc:
            logger.warning("Survey read failed for %s: %s", person_id, exc)
            return None
        if not data:
            return None
        return QuizResponses.from_dict(data)

    def add_sleep_entries(self, person_id: str, entries: Iterable[SleepEntry]) -> int:
        payload = [json.dumps(e.to_dict()) for e in entries]
        if payload:
            self.r.rpush(f"{SLEEP_PREFIX}{person_id}", *payload)
        return len(payload)

    def load_sleep(self, person_id: str) -> list[SleepEntry]:
        try:
            raw = self.r.lrange(f"{SLEEP_PREFIX}{person_id}", 0, -1)
        except redis.RedisError as exc:
            logger.warning("Sleep log read failed for %s: %s", person_id, exc)
            return []
        return [SleepEntry.from_dict(json.loads(item)) for item in raw]

    # ── Profiles & population ────────────────────────────────────────────

    def load_profile(self, person_id: str) -> Optional[UnifiedProfile]:
        try:
            raw = self.r.get(f"{PROFILE_PREFIX}{person_id}")
        except redis.RedisError as exc:
            logger.warning("Previous profile read failed for %s: %s", person_id, exc)
            return None
        return UnifiedProfile.from_dict(json.loads(raw)) if raw else None

    def population_scores(self, domain: str, exclude: str | None = None) -> Optional[list[float]]:
        """Other people's positive current scores for *domain*, ascending."""
        try:
            rows = self.r.zrangebyscore(f"{LEADERBOARD_PREFIX}{domain}", "(0", "+inf", withscores=True)
        except redis.RedisError as exc:
            logger.warning("Population read failed for %s: %s", domain, exc)
            return None
        return [score for member, score in rows if member != exclude]

    def population_snapshot(self, exclude: str | None = None) -> Optional[dict[str, list[float]]]:
        """domain -> population scores, or ``None`` when any read fails."""
        snapshot = {}
        for domain in self.mapping.domain_names:
            scores = self.population_scores(domain, exclude)
            if scores is None:
                return None
            snapshot[domain] = scores
        return snapshot

    def leaderboard(self, domain: str, limit: int = 10) -> dict[str, Any]:
        """Top-K people for one domain with their percentile and confidence."""
        key = f"{LEADERBOARD_PREFIX}{domain}"
        rows = self.r.zrevrangebyscore(key, "+inf", "(0", start=0, num=limit, withscores=True)
        total = self.r.zcount(key, "(0", "+inf")
        raw_profiles = self.r.mget([f"{PROFILE_PREFIX}{pid}" for pid, _ in rows]) if rows else []

        entries = []
        for rank, ((pid, score), raw) in enumerate(zip(rows, raw_profiles), start=1):
            data = json.loads(raw) if raw else {}
            entries.append({
                "rank": rank,
                "person_id": pid,
                "score": int(score),
                "percentile": int((data.get("percentiles") or {}).get(domain, 0)),
                "confidence": float(((data.get("domains") or {}).get(domain) or {}).get("confidence", 0.0)),
            })
        return {"domain": domain, "entries": entries, "total_users": int(total)}

    # ── Sync results ─────────────────────────────────────────────────────

    def load_sync(self, person_id: str) -> Optional[SyncResult]:
        raw = self.r.get(f"{SYNC_PREFIX}{person_id}")
        return SyncResult.from_dict(json.loads(raw)) if raw else None

    def sync_history(self, person_id: str, count: int = SYNC_HISTORY_LENGTH) -> list[dict[str, Any]]:
        raw = self.r.lrange(f"{SYNC_HISTORY_PREFIX}{person_id}", 0, count - 1)
        return [json.loads(item) for item in raw]

    def load_daily(self, person_id: str, day: str) -> Optional[DailyScores]:
        raw = self.r.get(daily_key(person_id, day))
        if not raw:
            return None
        data = json.loads(raw)
        return DailyScores(date=data["date"], scores=data.get("scores", {}),
                           computed_from=data.get("computed_from", {}))

    # ── Atomic write ─────────────────────────────────────────────────────

    def save_results(
        self,
        profile: UnifiedProfile,
        sync: SyncResult | None = None,
        daily: DailyScores | None = None,
    ) -> None:
        """Overwrite a person's profile (and sync / daily scores) atomically."""
        pid = profile.person_id
        pipe = self.r.pipeline(transaction=True)
        pipe.set(f"{PROFILE_PREFIX}{pid}", json.dumps(profile.to_dict()))
        pipe.sadd(PROFILES_KEY, pid)
        pipe.sadd(PERSONS_KEY, pid)
        for domain, score in profile.domains.items():
            key = f"{LEADERBOARD_PREFIX}{domain}"
            if score.current > 0:
                pipe.zadd(key, {pid: score.current})
            else:
                pipe.zrem(key, pid)
        if sync is not None:
            history_key = f"{SYNC_HISTORY_PREFIX}{pid}"
            pipe.set(f"{SYNC_PREFIX}{pid}", json.dumps(sync.to_dict()))
            pipe.lpush(history_key, json.dumps({
                "sync_score": sync.sync_score,
                "computed_at": sync.computed_at,
            }))
            pipe.ltrim(history_key, 0, SYNC_HISTORY_LENGTH - 1)
        if daily is not None:
            pipe.set(daily_key(pid, daily.date), json.dumps(daily.to_dict()))
        pipe.execute()
