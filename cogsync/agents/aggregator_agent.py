"""Profile Aggregator Agent.

The invocation surface for recomputation:

1. periodic full-population recompute (``on_interval``)
2. on-demand single-person recompute via ``RecomputeRequest``, answered
   with ``ProfileRecomputed``

Both paths go through :mod:`cogsync.engine.recompute` and share one
lock, so a person is never recomputed twice at once.  The handler
bodies live in plain functions so they can run without an agent.

Usage:
    python -m cogsync.agents.aggregator_agent
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import redis
from uagents import Agent, Context

from cogsync.config.settings import (
    AGENT_DEPLOY_MODE,
    AGENT_ENDPOINT_BASE,
    AGGREGATION_INTERVAL,
    AGGREGATOR_PORT,
    AGGREGATOR_SEED,
    REDIS_URL,
)
from cogsync.data_pipeline.store import ProfileStore
from cogsync.engine.errors import PopulationUnavailableError, ProfileComputationError
from cogsync.engine.recompute import recompute_all, recompute_person
from cogsync.models.messages import BatchCompleted, ProfileRecomputed, RecomputeRequest

logger = logging.getLogger(__name__)

NO_SYNC_SCORE = -1


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


# ── Handler bodies ───────────────────────────────────────────────────────

def handle_recompute_request(req: RecomputeRequest, store: ProfileStore | None = None) -> ProfileRecomputed:
    """Recompute one person and describe the outcome."""
    store = store or ProfileStore(_get_redis())
    try:
        outcome = recompute_person(req.person_id, store)
    except ProfileComputationError as exc:
        return ProfileRecomputed(
            person_id=req.person_id,
            success=False,
            message=exc.reason,
            reliability=0,
            sync_score=NO_SYNC_SCORE,
        )
    return ProfileRecomputed(
        person_id=req.person_id,
        success=True,
        message="Profile recomputed",
        reliability=outcome.profile.data_quality.reliability,
        sync_score=outcome.sync.sync_score if outcome.sync else NO_SYNC_SCORE,
    )


def run_batch(store: ProfileStore | None = None) -> BatchCompleted | None:
    """Full recompute; ``None`` when the population cannot be enumerated."""
    store = store or ProfileStore(_get_redis())
    try:
        summary = recompute_all(store)
    except PopulationUnavailableError:
        logger.exception("Batch recompute aborted")
        return None
    return BatchCompleted(
        succeeded=summary.succeeded,
        failed=summary.failed,
        failed_person_ids=summary.failed_person_ids,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# ── Serialized entry points ──────────────────────────────────────────────

async def _serialized(lock: asyncio.Lock, fn, *args):
    # Blocking Redis I/O runs off the agent loop, one recompute at a time
    async with lock:
        return await asyncio.to_thread(fn, *args)


async def periodic_batch(lock: asyncio.Lock, store: ProfileStore | None = None) -> BatchCompleted | None:
    return await _serialized(lock, run_batch, store)


async def on_demand_recompute(
    lock: asyncio.Lock, req: RecomputeRequest, store: ProfileStore | None = None,
) -> ProfileRecomputed:
    return await _serialized(lock, handle_recompute_request, req, store)


# ── Agent factory ────────────────────────────────────────────────────────

def create_profile_aggregator(port: int = AGGREGATOR_PORT) -> Agent:
    """Create and configure the Profile Aggregator agent."""
    agent = Agent(
        name="profile_aggregator",
        seed=AGGREGATOR_SEED,
        port=port,
        endpoint=[f"{AGENT_ENDPOINT_BASE}:{port}/submit"] if AGENT_DEPLOY_MODE == "local" else [],
        mailbox=AGENT_DEPLOY_MODE == "agentverse",
    )
    recompute_lock = asyncio.Lock()

    @agent.on_event("startup")
    async def on_startup(ctx: Context):
        logger.info("Profile Aggregator started. Address: %s", agent.address)

    @agent.on_interval(period=AGGREGATION_INTERVAL)
    async def periodic_recompute(ctx: Context):
        result = await periodic_batch(recompute_lock)
        if result is not None:
            logger.info("Periodic recompute: %d ok, %d failed", result.succeeded, result.failed)

    @agent.on_message(RecomputeRequest, replies=ProfileRecomputed)
    async def handle_recompute(ctx: Context, sender: str, req: RecomputeRequest):
        logger.info("RecomputeRequest for %s from %s", req.person_id, req.requested_by or sender)
        reply = await on_demand_recompute(recompute_lock, req)
        await ctx.send(sender, reply)

    return agent


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s",
        datefmt="%H:%M:%S",
    )
    create_profile_aggregator().run()
