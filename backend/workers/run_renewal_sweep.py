"""
Renew subscriptions whose term ends within the lookahead window.

    python -m workers.run_renewal_sweep --lookahead-hours 24 --dry-run
"""

import sys
from datetime import datetime, timedelta
from typing import Optional

from common.core.time_utils import ensure_utc
from common.workers.launcher import JobLauncher, base_parser
from packages.subscriptions.services.sweep_service import RenewalSweeper, SweepReport


def setup_cli():
    parser = base_parser("Renew subscriptions that are about to end")
    parser.add_argument(
        "--lookahead-hours",
        type=int,
        default=None,
        help="Renew subscriptions ending within this many hours (default from settings)",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time as ISO-8601, for backfills",
    )
    args = parser.parse_args()
    return args, {
        "dry_run": args.dry_run,
        "lookahead_hours": args.lookahead_hours,
        "now": args.now,
    }


async def run_renewal_sweep(
    dry_run: bool = False,
    lookahead_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SweepReport:
    lookahead = timedelta(hours=lookahead_hours) if lookahead_hours else None
    return await RenewalSweeper().run(
        now=ensure_utc(now) if now else None, dry_run=dry_run, lookahead=lookahead
    )


if __name__ == "__main__":
    report = JobLauncher().run_with_cli(
        job=run_renewal_sweep,
        job_name="Renewal Sweep",
        cli_setup_func=setup_cli,
    )
    sys.exit(1 if report.has_failures else 0)
