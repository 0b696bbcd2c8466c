"""
Sync time records from a CSV export to Redmine time entries.

Usage:
    # Sync a local export
    python sync_csv_to_redmine.py --api-key KEY --base-url https://redmine.example.com \
        --csv export.csv --project-id 12 --user-id 34

    # Read connection parameters from config.json, CSV from a URL
    python sync_csv_to_redmine.py --csv https://example.com/export.csv

    # Dry-run - shows what would happen
    python sync_csv_to_redmine.py --csv export.csv --dry-run
"""

import argparse
import logging

from clients import RedmineClient
from csv_loader import FetchError, FormatError, load_records
from reconcile import (
    EXIT_CSV_FETCH,
    EXIT_CSV_FORMAT,
    EXIT_OK,
    EXIT_PARAMS,
    NOOP,
    ReconciliationEngine,
    SyncAborted,
)
from utils import CONFIG_FILE, load_config_safe, merge_params, setup_logging, validate_params

log = logging.getLogger("sync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync CSV time records to Redmine time entries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python sync_csv_to_redmine.py --api-key KEY --base-url https://redmine.example.com \\
        --csv export.csv --project-id 12 --user-id 34

    # Dry-run - shows what would happen
    python sync_csv_to_redmine.py --csv export.csv --dry-run
        """,
    )

    parser.add_argument("--api-key", help="Redmine API key")
    parser.add_argument("--base-url", help="Redmine base URL")
    parser.add_argument("--csv", help="CSV export: local path or http(s) URL")
    parser.add_argument("--project-id", help="Redmine project id")
    parser.add_argument("--user-id", help="Redmine user id")
    parser.add_argument("--delimiter", default=",", help="CSV field delimiter (default: ',')")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"Config file (default: {CONFIG_FILE})")
    parser.add_argument("--dry-run", action="store_true", help="Show changes without applying them")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    return parser


def run(params: dict, delimiter: str = ",", dry_run: bool = False) -> int:
    """Load the CSV and reconcile it; return the process exit code."""
    log.info(f"Loading CSV from {params['csv']}...")
    try:
        records = load_records(params["csv"], delimiter)
    except FetchError as e:
        log.error(f"CSV fetch failed: {e}")
        return EXIT_CSV_FETCH
    except FormatError as e:
        log.error(f"CSV format error: {e}")
        return EXIT_CSV_FORMAT

    if not records:
        log.info("No complete rows in the CSV. Done.")
        return EXIT_OK

    client = RedmineClient(params["base_url"], params["api_key"])
    engine = ReconciliationEngine(
        client,
        project_id=int(params["project_id"]),
        user_id=int(params["user_id"]),
        dry_run=dry_run,
    )

    try:
        state = engine.run(records)
    except SyncAborted as e:
        log.error(str(e))
        return e.exit_code

    if dry_run and state.action != NOOP:
        log.info("Dry-run: no changes were made. Run without --dry-run to apply.")
    log.info("Done.")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    config = load_config_safe(args.config)
    if config is None:
        return EXIT_PARAMS

    params = merge_params(
        {
            "api_key": args.api_key,
            "base_url": args.base_url,
            "csv": args.csv,
            "project_id": args.project_id,
            "user_id": args.user_id,
        },
        config,
    )
    errors = validate_params(params)
    if len(args.delimiter) != 1:
        errors.append(f"--delimiter must be a single character, got '{args.delimiter}'")
    if errors:
        log.error("Missing or invalid parameters:")
        for err in errors:
            print(f"    - {err}")
        return EXIT_PARAMS

    return run(params, delimiter=args.delimiter, dry_run=args.dry_run)


if __name__ == "__main__":
    exit(main())
