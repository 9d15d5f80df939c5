#!/usr/bin/env python3
"""
Import job run observations from JSON files into the database.

Each file holds one payload:
    {"release": "4.9", "jobs": [{"name": ..., "dashboard_url": ..., "variants": [...],
      "runs": [{"url": ..., "timestamp": <ms>, "succeeded": ..., "failed": ...,
                "tests": [{"name": ..., "status": "SUCCESS|FAILURE|FLAKE"}]}]}]}

Usage:
    python scripts/import_job_runs.py FILE [FILE ...]

Examples:
    # Import one day of runs
    python scripts/import_job_runs.py data/4.9-2021-10-01.json

    # Validate files without writing anything
    python scripts/import_job_runs.py --dry-run data/*.json
"""
import sys
import argparse
import json
import logging
from pathlib import Path

# Add parent directory to path
SCRIPT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(SCRIPT_DIR))

from pydantic import ValidationError

from ci_health.database import get_db_context, init_db
from ci_health.services.import_service import JobRunsPayload, import_job_runs

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Import job run observations from JSON files into the database"
    )
    parser.add_argument('files', nargs='+', type=Path, help='JSON payload files')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate payloads without importing'
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not args.dry_run:
        init_db()

    failures = 0
    for path in args.files:
        try:
            payload = json.loads(path.read_text())
            if args.dry_run:
                data = JobRunsPayload.model_validate(payload)
                print(f"{path}: valid ({len(data.jobs)} jobs)")
                continue
            with get_db_context() as db:
                stats = import_job_runs(db, payload)
            print(f"{path}: imported {stats['runs_imported']} runs, skipped {stats['runs_skipped']}")
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            failures += 1
            logger.error(f"Failed to import {path}: {e}")

    if failures:
        print(f"ERROR: {failures} of {len(args.files)} files failed")
        sys.exit(1)


if __name__ == '__main__':
    main()
