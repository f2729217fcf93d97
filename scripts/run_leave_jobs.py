#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from hrops.clock import get_clock
from hrops.db import SessionLocal
from hrops.logging_utils import setup_json_logging
from hrops.services.leave_jobs import accrue_monthly_leave, reset_all_annual_leave
from hrops.settings import get_settings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run scheduled leave ledger jobs.")
    parser.add_argument("job", choices=["monthly-accrual", "annual-reset"])
    parser.add_argument("--run-date", type=date.fromisoformat, default=None, help="Override today (YYYY-MM-DD).")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run the monthly accrual even when the run date is not a month end.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    setup_json_logging(settings.log_level, service=f"{settings.app_name}-jobs")
    clock = get_clock()

    with SessionLocal() as db:
        if args.job == "monthly-accrual":
            result = accrue_monthly_leave(db, clock=clock, run_date=args.run_date, force=args.force)
        else:
            result = reset_all_annual_leave(db, clock=clock, run_date=args.run_date)

    print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
