#!/usr/bin/env python3
"""Command-line interface for the venue enrichment pipeline.

Commands:
  - squashstats categorize       : Categorize a batch of venues and persist confident results
  - squashstats stats            : Show how many venues still need a category
  - squashstats check-place-ids  : Validate stored Google Place IDs (read-only)
  - squashstats update-name      : Reconcile one venue's name with Google
  - squashstats fix-category     : Manually set a venue's category

Typical usage:
  squashstats categorize --batch 20 --min-confidence MEDIUM --export csv
  squashstats categorize --dry-run --no-ai
  squashstats fix-category 123 5 --reason "Dedicated squash club"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from squashstats.configs.config import ConfigurationError
from squashstats.configs.settings import Settings, get_settings
from squashstats.enrichment.gateways import GatewayError, PlaceIdStatus
from squashstats.monitoring.logging import setup_logging
from squashstats.schemas import (
    CategorizationResult,
    CategorizationSource,
    Confidence,
    category_name,
)

logger = logging.getLogger("squashstats.cli")

CONFIDENCE_CHOICES = [c.value for c in Confidence]
MANUAL_CREATED_BY = "Manual: CLI"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="squashstats", description="Squash venue enrichment CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = p.add_subparsers(dest="cmd")

    # categorize
    pc = sub.add_parser("categorize", help="Categorize venues in 'Don't know' (and optionally 'Other')")
    pc.add_argument("--batch", "-b", type=int, default=10, help="Number of venues to process")
    pc.add_argument("--dry-run", action="store_true", help="Show recommendations without writing anything")
    pc.add_argument("--include-other", action="store_true", help="Also process venues in 'Other'")
    pc.add_argument(
        "--min-confidence",
        default=Confidence.HIGH.value,
        choices=CONFIDENCE_CHOICES,
        help="Lowest confidence that is written to the database",
    )
    pc.add_argument("--no-ai", action="store_true", help="Disable the AI fallback")
    pc.add_argument("--no-court-count", action="store_true", help="Skip court-count enrichment")
    pc.add_argument("--export", choices=["csv", "json"], default=None, help="Export results")
    pc.add_argument("--yes", "-y", action="store_true", help="Apply updates without confirmation")

    # stats
    sub.add_parser("stats", help="Show categorization backlog")

    # check-place-ids
    pk = sub.add_parser("check-place-ids", help="Validate stored Place IDs with the free refresh")
    pk.add_argument("--batch", "-b", type=int, default=50, help="Number of venues to check")
    pk.add_argument("--offset", type=int, default=0, help="Skip this many venues")

    # update-name
    pn = sub.add_parser("update-name", help="Reconcile a venue name with Google")
    pn.add_argument("venue_id", type=int, help="Venue id")
    pn.add_argument("--dry-run", action="store_true", help="Show the change without writing it")

    # fix-category
    pf = sub.add_parser("fix-category", help="Manually set a venue's category")
    pf.add_argument("venue_id", type=int, help="Venue id")
    pf.add_argument("category_id", type=int, help="New category id")
    pf.add_argument("--reason", required=True, help="Why the category is being changed")

    return p.parse_args(argv)


def should_update(result: CategorizationResult, min_confidence: Confidence) -> bool:
    """A recommendation is persisted only at or above the caller's threshold."""
    if not result.has_recommendation or result.confidence is None:
        return False
    if result.recommended_category_id == result.current_category_id:
        return False
    return result.confidence.meets(min_confidence)


def _confirm(prompt: str) -> bool:
    if not sys.stdin.isatty():
        return False
    return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")


def _print_result(result: CategorizationResult) -> None:
    print(f"[{result.venue_id}] {result.venue_name}")
    if result.error:
        print(f"    ERROR: {result.error}")
        return
    print(
        f"    {category_name(result.current_category_id)} -> "
        f"{category_name(result.recommended_category_id)} "
        f"({result.confidence.value if result.confidence else '-'}, "
        f"{result.source.value if result.source else '-'})"
    )
    print(f"    {result.reasoning}")
    if result.new_name:
        print(f"    Name: '{result.old_name}' -> '{result.new_name}'")
    if result.court_count_searched:
        print(
            f"    Courts: {result.court_count_found} "
            f"({result.court_count_confidence.value if result.court_count_confidence else '-'})"
        )


def _build_engine(settings: Settings):
    from squashstats.persistence import create_db_engine

    return create_db_engine(settings.DATABASE_URL)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except (ConfigurationError, GatewayError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    except Exception as e:
        logger.exception("Command failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from squashstats import __version__

        print(f"squashstats version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(
        args.log_level or settings.LOG_LEVEL,
        json_logs=bool(args.json_logs or settings.LOG_JSON),
        log_file=settings.REPORTS_DIR / "squashstats.log",
    )

    if args.cmd == "categorize":
        return _cmd_categorize(args, settings)
    if args.cmd == "stats":
        return _cmd_stats(settings)
    if args.cmd == "check-place-ids":
        return _cmd_check_place_ids(args, settings)
    if args.cmd == "update-name":
        return _cmd_update_name(args, settings)
    if args.cmd == "fix-category":
        return _cmd_fix_category(args, settings)
    return 1


def _cmd_categorize(args: argparse.Namespace, settings: Settings) -> int:
    from squashstats.enrichment.factory import create_venue_categorizer
    from squashstats.persistence import VenueCategoryUpdater
    from squashstats.reporting import export_results, summarize

    engine = _build_engine(settings)
    categorizer = create_venue_categorizer(
        settings,
        engine=engine,
        enable_court_count=not args.no_court_count,
    )
    min_confidence = Confidence.parse(args.min_confidence, default=Confidence.HIGH)

    if args.dry_run:
        print("DRY RUN: nothing will be written")

    results = categorizer.process_batch(
        limit=args.batch,
        include_other=args.include_other,
        use_ai_fallback=not args.no_ai,
        dry_run=args.dry_run,
    )
    if not results:
        print("No venues need categorization.")
        return 0

    for result in results:
        _print_result(result)

    to_update = [r for r in results if should_update(r, min_confidence)]
    applied: set[int] = set()
    if args.dry_run:
        print(f"\n{len(to_update)} venue(s) would be updated at >= {min_confidence.value}")
    elif to_update and (args.yes or _confirm(f"Apply {len(to_update)} category update(s)?")):
        updater = VenueCategoryUpdater(engine)
        for result in to_update:
            outcome = updater.update_venue(
                result.venue_id, result.recommended_category_id, result.to_audit_metadata()
            )
            if outcome.success:
                applied.add(result.venue_id)
            else:
                print(f"  Update failed for venue {result.venue_id}: {outcome.message}", file=sys.stderr)

    # A successful category update already bumps updated_at; everything else is touched.
    if not args.dry_run:
        categorizer.repository.touch([r.venue_id for r in results if r.venue_id not in applied])

    summary = summarize(results, updated=len(applied))
    print("-" * 40)
    print(f"Updated: {summary['updated']}  Skipped: {summary['skipped']}  Failed: {summary['failed']}")
    print(f"Summary: {json.dumps(summary)}")

    if args.export:
        path = export_results(results, args.export, settings.REPORTS_DIR)
        print(f"Exported results to {path}")

    report = categorizer.detector.generate_report(settings.REPORTS_DIR)
    if report["unmapped_types"] or report["ai_suggested_categories"]:
        print(f"New category report: {settings.REPORTS_DIR / 'suggested-new-categories.json'}")
    print("-" * 40)
    return 0 if summary["failed"] < len(results) else 1


def _cmd_stats(settings: Settings) -> int:
    from squashstats.persistence import VenueRepository

    stats: dict[str, Any] = VenueRepository(_build_engine(settings)).get_categorization_stats()
    print(json.dumps(stats, indent=2))
    return 0


def _cmd_check_place_ids(args: argparse.Namespace, settings: Settings) -> int:
    from squashstats.enrichment.factory import create_venue_categorizer

    categorizer = create_venue_categorizer(
        settings, engine=_build_engine(settings), enable_court_count=False
    )
    checks = categorizer.check_place_ids(limit=args.batch, offset=args.offset)

    counts = {status: 0 for status in PlaceIdStatus}
    for check in checks:
        counts[check.status] += 1
        if check.status is not PlaceIdStatus.VALID:
            detail = f" -> {check.current_place_id}" if check.current_place_id else ""
            print(f"[{check.venue.id}] {check.venue.name}: {check.status.value}{detail}")

    print("-" * 40)
    print("  ".join(f"{status.value}: {count}" for status, count in counts.items()))
    return 0


def _cmd_update_name(args: argparse.Namespace, settings: Settings) -> int:
    from squashstats.enrichment.factory import create_venue_categorizer

    categorizer = create_venue_categorizer(
        settings, engine=_build_engine(settings), enable_court_count=False
    )
    venue = categorizer.repository.get_venue(args.venue_id)
    if venue is None:
        print(f"Error: Venue {args.venue_id} not found", file=sys.stderr)
        return 1

    outcome = categorizer.update_venue_name(venue, dry_run=args.dry_run)
    print(f"{outcome.message}: '{outcome.old_value}' -> '{outcome.new_value}'")
    return 0 if outcome.success else 1


def _cmd_fix_category(args: argparse.Namespace, settings: Settings) -> int:
    from squashstats.persistence import VenueCategoryUpdater

    outcome = VenueCategoryUpdater(_build_engine(settings)).update_venue(
        args.venue_id,
        args.category_id,
        {
            "confidence": Confidence.HIGH.value,
            "reasoning": args.reason,
            "source": CategorizationSource.MANUAL.value,
            "created_by": MANUAL_CREATED_BY,
        },
    )
    if not outcome.success:
        print(f"Error: {outcome.message}", file=sys.stderr)
        return 1

    print(
        f"Venue {args.venue_id}: {category_name(outcome.old_value)} -> "
        f"{category_name(outcome.new_value)}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
