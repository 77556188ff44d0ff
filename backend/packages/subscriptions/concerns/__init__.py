"""Mixins for subscription owners."""

from packages.subscriptions.concerns.has_subscriptions import HasSubscriptions

__all__ = ["HasSubscriptions"]
