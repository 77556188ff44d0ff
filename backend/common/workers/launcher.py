"""
Common launcher for one-shot maintenance jobs (sweeps) run from cron or a
scheduler.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Awaitable, Callable, Optional

from common.core.otel_exporter import _initialize_telemetry, get_logger
from common.db.session import engine
from common.providers.locking.factory import get_lock_provider


def base_parser(description: str) -> argparse.ArgumentParser:
    """Arguments every job accepts."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List what would be processed without changing anything",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


class JobLauncher:
    """Handles logging, telemetry, signals and resource cleanup around a job."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.job_name: Optional[str] = None

    def _setup_logging(self):
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,  # This ensures it overrides any existing configuration
        )

    def _signal_handler(self, signum: int, frame: Any) -> None:
        self.logger.info(f"Received signal {signum}, stopping {self.job_name}...")
        sys.exit(130)

    def _register_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    async def _run_job_async(
        self, job: Callable[..., Awaitable[Any]], job_kwargs: dict
    ) -> Any:
        self._register_signal_handlers()
        try:
            self.logger.info(f"Starting {self.job_name}...")
            return await job(**job_kwargs)
        finally:
            self.logger.info("Performing job cleanup...")
            await get_lock_provider().disconnect()
            await engine.dispose()

    def run(
        self,
        job: Callable[..., Awaitable[Any]],
        job_name: str,
        setup_logging: bool = True,
        job_kwargs: Optional[dict] = None,
        log_level: Optional[str] = None,
    ) -> Any:
        """
        Run ``job(**job_kwargs)`` to completion and return its result.

        Args:
            job: Coroutine function doing the work
            job_name: Human readable name for logging
            setup_logging: Whether to setup logging configuration
            job_kwargs: Kwargs to pass to the job
            log_level: Root logger level override
        """
        self.job_name = job_name
        _initialize_telemetry()
        if setup_logging:
            self._setup_logging()
        if log_level:
            logging.getLogger().setLevel(getattr(logging, log_level))

        self.logger.info(f"Configuring {job_name}...")
        return asyncio.run(self._run_job_async(job, job_kwargs or {}))

    def run_with_cli(
        self,
        job: Callable[..., Awaitable[Any]],
        job_name: str,
        cli_setup_func: Callable[[], tuple],
        setup_logging: bool = True,
    ) -> Any:
        """
        Run a job with CLI argument parsing support.

        ``cli_setup_func`` parses the command line and returns
        ``(args, job_kwargs)``.
        """
        args, job_kwargs = cli_setup_func()
        return self.run(
            job=job,
            job_name=job_name,
            setup_logging=setup_logging,
            job_kwargs=job_kwargs,
            log_level=getattr(args, "log_level", None),
        )
