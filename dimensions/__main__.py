"""CLI entry point for dimension jobs.

Usage:
    python -m dimensions periods --start 2015-01-01 --end 2030-12-31 --output ./periods.parquet
    python -m dimensions periods --config ./ecommerce.yaml
    python -m dimensions snapshot ./ecommerce.yaml --name addresses_hist --as-of 2025-01-15T02:00:00
    python -m dimensions current ./ecommerce.yaml --name addresses_hist --output ./current.parquet
    python -m dimensions run ./ecommerce.yaml
    python -m dimensions validate ./ecommerce.yaml
    python -m dimensions hierarchy --input ./categories.csv --output ./hierarchy.parquet
    python -m dimensions generate-samples --seed 42 --output ./sample_data
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pydantic

from dimensions.lib.config_loader import CalendarJobConfig, load_project, validate_project
from dimensions.lib.errors import ConfigurationError, DimensionError
from dimensions.lib.jobs import CalendarJob, SnapshotJob, build_hierarchy_file
from dimensions.lib.logging import setup_logging
from dimensions.lib.runner import run_project
from dimensions.lib.settings import get_settings
from dimensions.lib.synthetic import evolve_addresses, generate_addresses, generate_categories

logger = logging.getLogger(__name__)


def print_result(result: Dict[str, Any], title: str) -> None:
    """Print a job result in a readable format."""
    print()
    print("=" * 60)
    print(f"Job: {title}")
    print("=" * 60)

    if result.get("dry_run"):
        print("DRY RUN - No data was written")

    if "inserts" in result:
        print(f"As of:       {result['as_of']}")
        print(f"Inserts:     {result['inserts']}")
        print(f"Expirations: {result['expirations']} ({result['deleted']} deleted)")
        print(f"Unchanged:   {result['unchanged']}")
        if result.get("stale"):
            print(f"Stale:       {result['stale']} (missing from extract, left open)")
        print(f"History:     {result['history_rows']} rows, {result['current_rows']} current")
    elif "row_count" in result:
        print(f"Rows: {result['row_count']}")

    if result.get("target"):
        print(f"Target: {result['target']}")
    if "_elapsed_seconds" in result:
        print(f"Elapsed: {result['_elapsed_seconds']:.2f}s")

    print("=" * 60)


def periods_command(args: argparse.Namespace) -> int:
    if args.config:
        project = load_project(args.config)
        if project.calendar is None:
            print(f"Error: {args.config} has no 'calendar' section")
            return 1
        config = project.calendar
    else:
        if not (args.start and args.end and args.output):
            print("Error: periods needs --config, or --start, --end and --output")
            return 1
        options: Dict[str, Any] = {
            "start_date": args.start,
            "end_date": args.end,
            "target_path": args.output,
            "holidays": args.holidays,
            "week_start": args.week_start,
        }
        if args.granularity:
            options["granularities"] = args.granularity
        config = _calendar_config(options)

    result = CalendarJob(config).run(dry_run=args.dry_run)
    print_result(result, config.name)
    return 0


def _calendar_config(options: Dict[str, Any]) -> CalendarJobConfig:
    try:
        return CalendarJobConfig(**options)
    except pydantic.ValidationError as e:
        issues = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigurationError(
            "Invalid periods options",
            details={f"error_{i + 1}": issue for i, issue in enumerate(issues)},
        ) from e


def snapshot_command(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    jobs = [project.snapshot(args.name)] if args.name else project.snapshots
    if not jobs:
        print(f"Error: {args.config} has no snapshot jobs")
        return 1

    as_of = args.as_of or datetime.now(timezone.utc).replace(microsecond=0)
    for job_config in jobs:
        result = SnapshotJob(job_config).run(as_of=as_of, dry_run=args.dry_run)
        print_result(result, job_config.name)
    return 0


def current_command(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    job = SnapshotJob(project.snapshot(args.name))
    metadata = job.write_current(args.output)
    print(f"Wrote {metadata.row_count} current rows to {args.output}")
    return 0


def run_command(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    results = run_project(project, as_of=args.as_of, dry_run=args.dry_run, only=args.only)
    for job_result in results:
        if job_result.success:
            print_result(job_result.result, job_result.job_name)
        else:
            print(f"\nFAILED {job_result.kind} job {job_result.job_name}: {job_result.error}")
    if args.summary:
        print(json.dumps([r.to_dict() for r in results], indent=2, default=str))
    return 0 if all(r.success for r in results) else 1


def validate_command(args: argparse.Namespace) -> int:
    errors = validate_project(args.config)
    if errors:
        print(f"{args.config} is invalid:")
        for error in errors:
            print(f"  {error}")
        return 1
    print(f"{args.config} is valid")
    return 0


def hierarchy_command(args: argparse.Namespace) -> int:
    metadata = build_hierarchy_file(args.input, args.output, strict=args.strict)
    print(f"Wrote {metadata.row_count} categories to {args.output}")
    return 0


def generate_samples_command(args: argparse.Namespace) -> int:
    """Write a series of address extracts and a category extract."""
    rng = random.Random(args.seed)
    output = Path(args.output)
    output.mkdir(parents=True, exist_ok=True)

    base = datetime(2025, 1, 1)
    extract = generate_addresses(rng, args.rows, base_time=base)
    for day in range(args.days):
        if day:
            extract = evolve_addresses(
                rng,
                extract,
                change_rate=args.change_rate,
                delete_rate=args.delete_rate,
                new_count=max(1, args.rows // 20),
                base_time=base + timedelta(days=day),
            )
        path = output / f"addresses_{(base + timedelta(days=day)).date().isoformat()}.csv"
        extract.to_csv(path, index=False)
        print(f"  Wrote {len(extract)} rows to {path}")

    categories_path = output / "categories.csv"
    generate_categories(rng).to_csv(categories_path, index=False)
    print(f"  Wrote categories to {categories_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dimensions",
        description="Build reporting-period and slowly changing dimensions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Reporting periods straight from the command line
    python -m dimensions periods --start 2015-01-01 --end 2030-12-31 --output ./periods.parquet

    # Snapshot one entity type as of a timestamp
    python -m dimensions snapshot ./ecommerce.yaml --name addresses_hist --as-of 2025-01-15T02:00:00

    # Run every job in a project file
    python -m dimensions run ./ecommerce.yaml
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to console")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    periods = commands.add_parser("periods", help="Generate the reporting-period table")
    periods.add_argument("--config", help="Project YAML with a 'calendar' section")
    periods.add_argument("--start", help="First date (YYYY-MM-DD)")
    periods.add_argument("--end", help="Last date, inclusive (YYYY-MM-DD)")
    periods.add_argument(
        "--granularity",
        action="append",
        help="Day, Week, Month, Quarter or Year (repeatable; default all)",
    )
    periods.add_argument("--holidays", default="greek", help="'greek', 'none' or a YAML/CSV file")
    periods.add_argument("--week-start", default="Monday", help="Weekday weeks start on")
    periods.add_argument("--output", help="Target .parquet or .csv file")
    periods.add_argument("--dry-run", action="store_true", help="Validate without writing")
    periods.set_defaults(handler=periods_command)

    snapshot = commands.add_parser("snapshot", help="Apply source extracts to history tables")
    snapshot.add_argument("config", help="Project YAML file")
    snapshot.add_argument("--name", help="Snapshot job name (default: all)")
    snapshot.add_argument("--as-of", help="Effective timestamp (ISO 8601, default: now UTC)")
    snapshot.add_argument("--dry-run", action="store_true", help="Plan without committing")
    snapshot.set_defaults(handler=snapshot_command)

    current = commands.add_parser("current", help="Write the current view of a history table")
    current.add_argument("config", help="Project YAML file")
    current.add_argument("--name", required=True, help="Snapshot job name")
    current.add_argument("--output", required=True, help="Target .parquet or .csv file")
    current.set_defaults(handler=current_command)

    run = commands.add_parser("run", help="Run every job in a project file")
    run.add_argument("config", help="Project YAML file")
    run.add_argument("--as-of", help="Effective timestamp for snapshot jobs")
    run.add_argument("--only", nargs="+", help="Run only these job names")
    run.add_argument("--dry-run", action="store_true", help="Validate and plan without writing")
    run.add_argument("--summary", action="store_true", help="Print a JSON summary of all results")
    run.set_defaults(handler=run_command)

    validate = commands.add_parser("validate", help="Validate a project file")
    validate.add_argument("config", help="Project YAML file")
    validate.set_defaults(handler=validate_command)

    hierarchy = commands.add_parser("hierarchy", help="Flatten a category extract")
    hierarchy.add_argument("--input", required=True, help="Category extract (.csv or .parquet)")
    hierarchy.add_argument("--output", required=True, help="Target .parquet or .csv file")
    hierarchy.add_argument("--strict", action="store_true", help="Fail on unreachable categories")
    hierarchy.set_defaults(handler=hierarchy_command)

    samples = commands.add_parser("generate-samples", help="Write synthetic source extracts")
    samples.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    samples.add_argument("--output", default="./sample_data", help="Output directory")
    samples.add_argument("--rows", type=int, default=200, help="Addresses in the first extract")
    samples.add_argument("--days", type=int, default=3, help="Number of daily extracts")
    samples.add_argument("--change-rate", type=float, default=0.1)
    samples.add_argument("--delete-rate", type=float, default=0.02)
    samples.set_defaults(handler=generate_samples_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_logging(
        verbose=args.verbose,
        json_format=args.json_logs or settings.json_logs,
        log_file=args.log_file or settings.log_file,
        level=settings.log_level,
    )

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except DimensionError as e:
        logger.error("%s failed: %s", args.command, e.message, extra={"error": e.to_dict()})
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
