#!/usr/bin/env python3
"""
Import exported telemetry for one person into Redis.

    parse  ->  store  ->  (optionally) recompute

Usage:
    python -m cogsync.scripts.import_telemetry PERSON \\
        --records export.json --sleep sleep.csv --survey survey.json --recompute
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import redis

from cogsync.config.settings import REDIS_URL
from cogsync.data_pipeline.parsers import (
    parse_activity_export,
    parse_sleep_log_csv,
    parse_survey_json,
)
from cogsync.data_pipeline.store import ProfileStore
from cogsync.engine.errors import ProfileComputationError
from cogsync.engine.recompute import recompute_person

log = logging.getLogger("import_telemetry")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load telemetry export files into the profile store.")
    parser.add_argument("person_id", help="Person the files belong to")
    parser.add_argument("--records", type=Path, help="JSON object {activity: [record, ...]}")
    parser.add_argument("--sleep", type=Path, help="Sleep log CSV (date, bed_time, wake_time, ...)")
    parser.add_argument("--survey", type=Path, help="Schedule survey JSON")
    parser.add_argument("--recompute", action="store_true", help="Recompute the profile after import")
    return parser


def run(args: argparse.Namespace, store: ProfileStore) -> int:
    person = args.person_id
    store.add_person(person)

    if args.records:
        exported = parse_activity_export(args.records)
        known = set(store.mapping.collections)
        for activity, records in exported.items():
            if activity not in known:
                log.warning("Skipping unknown activity %s (%d records)", activity, len(records))
                continue
            n = store.add_records(person, activity, records)
            log.info("  -> %s: %d records", activity, n)

    if args.sleep:
        n = store.add_sleep_entries(person, parse_sleep_log_csv(args.sleep))
        log.info("  -> sleep log: %d entries", n)

    if args.survey:
        responses = parse_survey_json(args.survey)
        if responses is None:
            log.warning("Survey file %s not found", args.survey)
        else:
            store.save_survey(person, responses)
            log.info("  -> survey stored")

    if args.recompute:
        try:
            outcome = recompute_person(person, store)
        except ProfileComputationError as exc:
            log.error("Recompute failed: %s", exc.reason)
            return 1
        log.info("Profile reliability %d/100, sync score %s",
                 outcome.profile.data_quality.reliability,
                 outcome.sync.sync_score if outcome.sync else "n/a")
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    args = build_parser().parse_args(argv)
    store = ProfileStore(redis.Redis.from_url(REDIS_URL, decode_responses=True))
    return run(args, store)


if __name__ == "__main__":
    sys.exit(main())
