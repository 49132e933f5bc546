#!/usr/bin/env python3
"""
Import Station Readings

Reads {STATION_ID}_{YYYY-MM-DD}.json files and stores normalized readings.

Usage:
    python scripts/import_readings.py                      # whole data dir
    python scripts/import_readings.py data/ICAYEY43_2026-10-18.json
"""

import argparse
import logging
import sys
from pathlib import Path

from contest_engine.collectors.readings import import_all, import_file
from contest_engine.config import settings
from contest_engine.db import close_db, get_db
from contest_engine.logging_config import setup_logging

logger = logging.getLogger("contest_engine.scripts.import_readings")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import station readings")
    parser.add_argument("file", nargs="?", type=Path, help="Single JSON file to import")
    parser.add_argument("--data-dir", default=settings.data_dir, help="Directory of reading files")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        db = get_db()
        if args.file:
            if not args.file.exists():
                print(f"File not found: {args.file}")
                return 1
            outcome = import_file(db, args.file)
            print(f"{outcome.filename}: {outcome.status}" + (f" ({outcome.reason})" if outcome.reason else ""))
            return 0 if outcome.status != "error" else 1

        summary = import_all(db, args.data_dir)
    except Exception:
        logger.exception("Fatal error")
        return 1
    finally:
        close_db()

    print("Import Summary:")
    print(f"  Imported: {summary.imported}")
    print(f"  Skipped:  {summary.skipped}")
    print(f"  Errors:   {summary.errors}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
