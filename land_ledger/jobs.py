"""Command-line entry points for external schedulers (cron, pg_cron shims, CI timers)

Usage:
    land-ledger-jobs run-due [--now 2024-01-05T09:00]
    land-ledger-jobs mark-late [--today 2024-01-05]
"""

import argparse
import sys
from datetime import date, datetime
from typing import List, Optional
from land_ledger.config import settings
from land_ledger.infrastructure.database.session import session_scope
from land_ledger.infrastructure.observability.logging import setup_logging
from land_ledger.services.payments import SaleService
from land_ledger.services.recurrence import run_due


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="land-ledger-jobs", description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run-due", help="Generate due recurring expenses/revenue")
    run_parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference timestamp (ISO 8601, default: current time)",
    )

    late_parser = commands.add_parser("mark-late", help="Persist Late status for overdue installments")
    late_parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date (ISO 8601, default: today)",
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.log_level)

    with session_scope() as db:
        if args.command == "run-due":
            run = run_due(db, args.now)
            for result in run.generated:
                print(f"{result.template_id} {result.record_id} {result.effective_date.isoformat()}")
            # Conflicts are retried next run; only failures are an error
            return 1 if run.failures else 0

        marked = SaleService(db).refresh_late_statuses(args.today)
        print(f"Marked {marked} installments as late")
        return 0


if __name__ == "__main__":
    sys.exit(main())
