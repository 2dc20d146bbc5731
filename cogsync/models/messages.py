"""Typed message models for the aggregation agent.

All messages are uAgents Model subclasses providing schema validation
and serialization across the Fetch.ai ecosystem.
"""

from uagents import Model


class RecomputeRequest(Model):
    """On-demand single-person recompute (forced refresh)."""
    person_id: str
    requested_by: str = ""   # free-form caller label for the log


class ProfileRecomputed(Model):
    """Reply to RecomputeRequest."""
    person_id: str
    success: bool
    message: str             # human-readable reason on failure
    reliability: int         # data-quality reliability 0-100
    sync_score: int          # -1 when no survey exists


class BatchCompleted(Model):
    """Summary of a periodic full-population recompute."""
    succeeded: int
    failed: int
    failed_person_ids: list
    timestamp: str           # ISO 8601
