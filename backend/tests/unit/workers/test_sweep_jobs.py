"""
Tests for the sweep job entry points and the job launcher.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from common.workers.launcher import JobLauncher, base_parser
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.services.subscription_service import SubscriptionService
from workers import run_expiry_sweep, run_renewal_sweep, run_usage_reset

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 2, 1, tzinfo=timezone.utc)


class TestJobFunctions:
    async def test_renewal_sweep(self, subscriber, basic_plan):
        service = SubscriptionService()
        subscription = await service.create(
            subscriber, basic_plan, with_trial=False, now=START
        )

        report = await run_renewal_sweep.run_renewal_sweep(
            lookahead_hours=48, now=datetime(2024, 1, 31)
        )

        assert report.succeeded == [subscription.id]
        renewed = await service.get(subscription.id)
        assert renewed.ends_at == datetime(2024, 3, 1, tzinfo=timezone.utc)

    async def test_renewal_sweep_dry_run(self, subscriber, basic_plan):
        service = SubscriptionService()
        subscription = await service.create(
            subscriber, basic_plan, with_trial=False, now=START
        )

        report = await run_renewal_sweep.run_renewal_sweep(
            dry_run=True, lookahead_hours=48, now=datetime(2024, 1, 31)
        )

        assert report.candidates == [subscription.id]
        assert report.succeeded == []
        assert (await service.get(subscription.id)).ends_at == END

    async def test_expiry_sweep(self, subscriber, basic_plan):
        service = SubscriptionService()
        subscription = await service.create(
            subscriber, basic_plan, with_trial=False, now=START
        )

        report = await run_expiry_sweep.run_expiry_sweep(
            now=datetime(2024, 2, 2, tzinfo=timezone.utc)
        )

        assert report.succeeded == [subscription.id]
        assert not report.has_failures
        expired = await service.get(subscription.id)
        assert expired.status == SubscriptionStatus.EXPIRED

    async def test_usage_reset_single_subscription(self, subscriber, basic_plan):
        service = SubscriptionService()
        subscription = await service.create(
            subscriber, basic_plan, with_trial=False, now=START
        )
        await service.usage_service.increment(subscription, "api_calls", 12)

        report = await run_usage_reset.run_usage_reset(
            subscription_id=subscription.id, feature="api_calls"
        )

        assert report.succeeded == [subscription.id]
        assert await service.usage_service.get(subscription, "api_calls") == Decimal("0")


class TestCli:
    def test_base_parser_defaults(self):
        args = base_parser("test").parse_args([])

        assert args.dry_run is False
        assert args.log_level == "INFO"

    def test_renewal_cli(self, monkeypatch):
        monkeypatch.setattr(
            "sys.argv",
            [
                "run_renewal_sweep",
                "--dry-run",
                "--lookahead-hours",
                "12",
                "--now",
                "2024-01-31T00:00:00+00:00",
            ],
        )

        args, job_kwargs = run_renewal_sweep.setup_cli()

        assert job_kwargs == {
            "dry_run": True,
            "lookahead_hours": 12,
            "now": datetime(2024, 1, 31, tzinfo=timezone.utc),
        }
        assert args.log_level == "INFO"

    def test_usage_reset_cli(self, monkeypatch):
        monkeypatch.setattr(
            "sys.argv", ["run_usage_reset", "--subscription", "7", "--feature", "exports"]
        )

        _, job_kwargs = run_usage_reset.setup_cli()

        assert job_kwargs == {
            "dry_run": False,
            "subscription_id": 7,
            "feature": "exports",
        }

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["run_expiry_sweep", "--log-level", "LOUD"])

        with pytest.raises(SystemExit):
            run_expiry_sweep.setup_cli()


class TestJobLauncher:
    @pytest.fixture
    def lock_provider(self):
        provider = MagicMock()
        provider.disconnect = AsyncMock()
        return provider

    @pytest.fixture
    def engine(self):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        return engine

    async def test_job_result_and_cleanup(self, lock_provider, engine):
        job = AsyncMock(return_value="done")

        with patch(
            "common.workers.launcher.get_lock_provider", return_value=lock_provider
        ), patch("common.workers.launcher.engine", engine), patch(
            "common.workers.launcher.signal.signal"
        ):
            result = await JobLauncher()._run_job_async(job, {"dry_run": True})

        assert result == "done"
        job.assert_awaited_once_with(dry_run=True)
        lock_provider.disconnect.assert_awaited_once()
        engine.dispose.assert_awaited_once()

    async def test_cleanup_runs_when_job_fails(self, lock_provider, engine):
        job = AsyncMock(side_effect=RuntimeError("boom"))

        with patch(
            "common.workers.launcher.get_lock_provider", return_value=lock_provider
        ), patch("common.workers.launcher.engine", engine), patch(
            "common.workers.launcher.signal.signal"
        ):
            with pytest.raises(RuntimeError):
                await JobLauncher()._run_job_async(job, {})

        lock_provider.disconnect.assert_awaited_once()
        engine.dispose.assert_awaited_once()

    def test_run_initializes_telemetry(self):
        def fake_asyncio_run(coro):
            coro.close()
            return "done"

        launcher = JobLauncher()
        with patch("common.workers.launcher._initialize_telemetry") as telemetry, patch(
            "common.workers.launcher.asyncio.run", side_effect=fake_asyncio_run
        ):
            result = launcher.run(AsyncMock(), "Test Job", setup_logging=False)

        assert result == "done"
        assert launcher.job_name == "Test Job"
        telemetry.assert_called_once()

    def test_run_with_cli_passes_parsed_kwargs(self):
        launcher = JobLauncher()
        args = MagicMock(log_level="DEBUG")

        with patch.object(launcher, "run", return_value="ok") as run:
            result = launcher.run_with_cli(
                job=AsyncMock(),
                job_name="CLI Job",
                cli_setup_func=lambda: (args, {"dry_run": False}),
                setup_logging=False,
            )

        assert result == "ok"
        assert run.call_args.kwargs["job_kwargs"] == {"dry_run": False}
        assert run.call_args.kwargs["log_level"] == "DEBUG"
