#!/usr/bin/env python3
"""
Command line entry point.

Usage:
    python -m lab_reconciliation init-db
    python -m lab_reconciliation ingest report.jpg --user 42
    python -m lab_reconciliation ingest page.jpg --user 42 --profile new --name "Jo March"
    python -m lab_reconciliation match "Гемоглобин"
    python -m lab_reconciliation convert 7.2 g/L g/dL --biomarker hemoglobin
    python -m lab_reconciliation name-key "Краснова Евгения"

Pending-name state lives in memory, so a prompt raised by `ingest` can
only be answered in the same invocation (--profile / --name).
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from .config.base_config import base_settings
from .config.logging_config import logging_settings
from .core.models import ExternalUser
from .core.orchestrator import create_orchestrator
from .core.outcomes import IngestionOutcome, OutcomeKind
from .matching.biomarker_matcher import BiomarkerMatcher
from .matching.name_key import name_key
from .reconciliation.unit_converter import to_canonical
from .storage.sqlite_store import SQLiteStore
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _print_outcome(outcome: IngestionOutcome):
    print(f"[{outcome.kind.value}] document={outcome.document_id}")
    if outcome.failure_reason:
        print(f"  reason: {outcome.failure_reason}")
    for option in outcome.profile_options:
        marker = "*" if option.is_primary else " "
        print(f"  {marker} {option.id}  {option.full_name}")
    if outcome.summary:
        print(outcome.summary)


async def _ingest(args) -> int:
    outcomes = []
    orchestrator = create_orchestrator(on_outcome=outcomes.append)

    path = Path(args.file)
    mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    user = ExternalUser(external_id=args.user, username=args.username, locale=args.locale)

    try:
        accepted = await orchestrator.submit_upload(user, path.read_bytes(), mime_type, path.name)
        _print_outcome(accepted)
        if accepted.kind != OutcomeKind.ACCEPTED:
            return 1

        await orchestrator.drain()
        final = outcomes[-1]
        _print_outcome(final)

        if final.kind == OutcomeKind.PROMPT_PROFILE and args.profile:
            final = await orchestrator.select_profile(user, args.profile)
            _print_outcome(final)
        if final.kind == OutcomeKind.PROMPT_NAME and args.name:
            final = await orchestrator.submit_name(user, args.name)
            _print_outcome(final)
    finally:
        await orchestrator.parser.close()

    return 0 if final.kind == OutcomeKind.SUCCESS else 1


def _init_db(args) -> int:
    base_settings.create_directories()
    store = SQLiteStore(base_settings.DATABASE_PATH)
    seed = Path(args.seed) if args.seed else base_settings.get_catalog_seed_path()
    logger.info(f"Seeding catalog from {seed}")
    count = store.seed_catalog(seed)
    print(f"Seeded {count} biomarkers into {base_settings.DATABASE_PATH}")
    return 0


def _match(args) -> int:
    store = SQLiteStore(base_settings.DATABASE_PATH)
    ref = BiomarkerMatcher(store=store).match(args.label)
    if ref is None:
        print("no match")
        return 1
    print(f"{ref.canonical_name} ({ref.id}, unit {ref.unit_default})")
    return 0


def _convert(args) -> int:
    result = to_canonical(args.value, args.from_unit, args.to_unit, args.biomarker)
    if not result.converted:
        print(f"{result.value} {result.unit} (no conversion)")
        return 0
    print(f"{result.value} {result.unit} (factor {result.factor})")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="lab_reconciliation", description="Lab report reconciliation engine")
    parser.add_argument("--log-level", default=logging_settings.LOG_LEVEL, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create the database and seed the biomarker catalog")
    init_db.add_argument("--seed", help="Custom catalog seed JSON")

    ingest = sub.add_parser("ingest", help="Ingest one document")
    ingest.add_argument("file", help="Image or PDF of a lab report")
    ingest.add_argument("--user", required=True, help="External user id")
    ingest.add_argument("--username")
    ingest.add_argument("--locale", default=None)
    ingest.add_argument("--mime-type", default=None)
    ingest.add_argument("--profile", help="Answer to the profile prompt: profile id or 'new'")
    ingest.add_argument("--name", help="Patient name when --profile new")

    match = sub.add_parser("match", help="Match a reading label to the catalog")
    match.add_argument("label")

    convert = sub.add_parser("convert", help="Convert a value to another unit")
    convert.add_argument("value", type=float)
    convert.add_argument("from_unit")
    convert.add_argument("to_unit")
    convert.add_argument("--biomarker", default=None, help="Canonical biomarker name for specific factors")

    key = sub.add_parser("name-key", help="Print the comparison key of a person name")
    key.add_argument("name")

    args = parser.parse_args(argv)
    setup_logging(
        level=args.log_level,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
    )

    if args.command == "init-db":
        return _init_db(args)
    if args.command == "ingest":
        return asyncio.run(_ingest(args))
    if args.command == "match":
        return _match(args)
    if args.command == "convert":
        return _convert(args)
    if args.command == "name-key":
        print(name_key(args.name))
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
