#!/usr/bin/env python3
"""Recalculate every entity's activity score.

Usage:
    python scripts/recalculate_scores.py

Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stealth.db.session import SessionLocal
from stealth.services.scoring import recalculate_all_scores


def main() -> int:
    db = SessionLocal()
    try:
        result = recalculate_all_scores(db)
        print(f"status=completed updated={result['updated']} as_of={result['as_of']}")
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
