"""
Reset usage counters, for one subscription or for every active one.

    python -m workers.run_usage_reset --subscription 42 --feature api_calls
"""

import sys
from typing import Optional

from common.workers.launcher import JobLauncher, base_parser
from packages.subscriptions.services.sweep_service import SweepReport, UsageResetSweeper


def setup_cli():
    parser = base_parser("Reset subscription usage counters")
    parser.add_argument(
        "--subscription",
        type=int,
        default=None,
        help="Only reset this subscription (default: all active subscriptions)",
    )
    parser.add_argument(
        "--feature",
        default=None,
        help="Only reset this feature (default: all features)",
    )
    args = parser.parse_args()
    return args, {
        "dry_run": args.dry_run,
        "subscription_id": args.subscription,
        "feature": args.feature,
    }


async def run_usage_reset(
    dry_run: bool = False,
    subscription_id: Optional[int] = None,
    feature: Optional[str] = None,
) -> SweepReport:
    return await UsageResetSweeper().run(
        subscription_id=subscription_id, feature=feature, dry_run=dry_run
    )


if __name__ == "__main__":
    report = JobLauncher().run_with_cli(
        job=run_usage_reset,
        job_name="Usage Reset",
        cli_setup_func=setup_cli,
    )
    sys.exit(1 if report.has_failures else 0)
