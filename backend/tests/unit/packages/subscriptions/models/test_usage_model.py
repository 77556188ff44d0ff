from decimal import Decimal

import pytest

from packages.subscriptions.models.domain.usage import Usage, UsageSummary


def make_usage(used, limit) -> Usage:
    return Usage(
        id=1,
        subscription_id=1,
        feature="api_calls",
        used=Decimal(str(used)),
        limit=Decimal(str(limit)) if limit is not None else None,
    )


class TestUsage:
    def test_over_limit_is_clamped(self):
        usage = make_usage(150, 100)
        assert usage.exceeds_limit()
        assert usage.get_percentage() == Decimal("100")
        assert usage.get_remaining() == Decimal("0")

    @pytest.mark.parametrize("used", [0, 1, 37, 100])
    def test_remaining_plus_used_is_limit(self, used):
        usage = make_usage(used, 100)
        assert usage.get_remaining() + usage.used == usage.limit

    @pytest.mark.parametrize("used", [0, 5, 10**9])
    def test_unlimited_never_exceeds(self, used):
        usage = make_usage(used, None)
        assert usage.is_unlimited()
        assert not usage.exceeds_limit()
        assert usage.get_remaining() is None
        assert usage.get_percentage() == Decimal("0")
        assert usage.within_limit(Decimal("1000"))

    def test_percentage(self):
        assert make_usage(25, 100).get_percentage() == Decimal("25")

    def test_zero_limit(self):
        usage = make_usage(0, 0)
        assert usage.exceeds_limit()
        assert usage.get_percentage() == Decimal("0")
        assert not usage.within_limit(Decimal("1"))

    def test_within_limit_with_proposed(self):
        usage = make_usage(90, 100)
        assert usage.within_limit(Decimal("10"))
        assert not usage.within_limit(Decimal("11"))


def test_summary_from_usage():
    summary = UsageSummary.from_usage(make_usage(40, 50))
    assert summary.remaining == Decimal("10")
    assert summary.percentage == Decimal("80")
    assert summary.exceeded is False
