"""
Expire subscriptions whose term has ended.

    python -m workers.run_expiry_sweep --dry-run
"""

import sys
from datetime import datetime
from typing import Optional

from common.core.time_utils import ensure_utc
from common.workers.launcher import JobLauncher, base_parser
from packages.subscriptions.services.sweep_service import ExpirySweeper, SweepReport


def setup_cli():
    parser = base_parser("Expire subscriptions past their end date")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time as ISO-8601, for backfills",
    )
    args = parser.parse_args()
    return args, {"dry_run": args.dry_run, "now": args.now}


async def run_expiry_sweep(
    dry_run: bool = False, now: Optional[datetime] = None
) -> SweepReport:
    return await ExpirySweeper().run(
        now=ensure_utc(now) if now else None, dry_run=dry_run
    )


if __name__ == "__main__":
    report = JobLauncher().run_with_cli(
        job=run_expiry_sweep,
        job_name="Expiry Sweep",
        cli_setup_func=setup_cli,
    )
    sys.exit(1 if report.has_failures else 0)
