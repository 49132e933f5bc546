#!/usr/bin/env python3
"""
Calculate Scores

Compares forecasts against imported station readings and stores scores.
Run daily after the readings have been imported.

Usage:
    python scripts/calculate_scores.py               # all pending dates
    python scripts/calculate_scores.py 2026-10-18    # one date
    python scripts/calculate_scores.py --reconcile   # check user totals
"""

import argparse
import logging
import sys
from datetime import date

from contest_engine.db import close_db, get_db
from contest_engine.logging_config import setup_logging
from contest_engine.scoring.batch import (
    DuckDBScoreStore, calculate_all_pending, calculate_scores_for_date, reconcile_all_totals,
)

logger = logging.getLogger("contest_engine.scripts.calculate_scores")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Calculate contest scores")
    parser.add_argument("date", nargs="?", type=date.fromisoformat, help="YYYY-MM-DD (default: all pending)")
    parser.add_argument("--reconcile", action="store_true", help="Compare user totals with the sum of their scores")
    parser.add_argument("--apply", action="store_true", help="With --reconcile, rewrite drifted totals")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        store = DuckDBScoreStore(get_db())
        if args.reconcile:
            checks = reconcile_all_totals(store, apply=args.apply)
            drifted = [c for c in checks if not c.in_sync]
            print(f"Checked {len(checks)} user(s), {len(drifted)} out of sync")
            for c in drifted:
                print(f"  user {c.user_id}: stored={c.stored_total} scores={c.computed_total}")
            return 1 if drifted and not args.apply else 0

        if args.date:
            results = calculate_scores_for_date(store, args.date)
        else:
            results = calculate_all_pending(store)
    except Exception:
        logger.exception("Fatal error")
        return 1
    finally:
        close_db()

    print("Summary:")
    print(f"  Calculated: {results.calculated}")
    print(f"  Skipped:    {results.skipped}")
    print(f"  Errors:     {results.errors}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
