#!/usr/bin/env python3
"""Run an ingestion job locally or from cron.

Usage:
    python scripts/run_ingestion.py
    python scripts/run_ingestion.py --connector arena --since-days 90
    python scripts/run_ingestion.py --scheduled

Runs the selected adapters, stores their signals, then recalculates every
entity score. Exits 0 when the job completed cleanly, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stealth.db.session import SessionLocal
from stealth.services.ingestion_job import run_ingestion
from stealth.services.scoring import recalculate_all_scores


def main() -> int:
    parser = argparse.ArgumentParser(description="Run stealth signal ingestion.")
    parser.add_argument("--connector", help="Run a single adapter by name (default: all enabled)")
    parser.add_argument(
        "--since-days",
        type=int,
        default=None,
        help="Lookback window in days (default: INGEST_DEFAULT_SINCE_DAYS)",
    )
    parser.add_argument(
        "--scheduled",
        action="store_true",
        help="Record the job as scheduled rather than manual",
    )
    args = parser.parse_args()
    if args.since_days is not None and not 1 <= args.since_days <= 365:
        parser.error("--since-days must be between 1 and 365")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    db = SessionLocal()
    try:
        result = asyncio.run(
            run_ingestion(
                db,
                connector=args.connector,
                since_days=args.since_days,
                job_type="scheduled" if args.scheduled else "manual",
            )
        )
        print(
            f"status={result['status']} "
            f"job_id={result['job_id']} "
            f"signals_discovered={result['signals_discovered']} "
            f"signals_stored={result['signals_stored']} "
            f"signals_skipped={result['signals_skipped']} "
            f"entities_created={result['entities_created']} "
            f"entities_updated={result['entities_updated']} "
            f"errors={result['errors_count']}"
        )
        if result.get("error"):
            print(f"error={result['error']}", file=sys.stderr)

        scores = recalculate_all_scores(db)
        print(f"scores_updated={scores['updated']}")
        return 0 if result["status"] == "completed" else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
