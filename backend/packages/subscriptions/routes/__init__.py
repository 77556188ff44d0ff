"""HTTP routes for plans, subscriptions and usage."""

from packages.subscriptions.routes import plans, subscriptions, usage

__all__ = ["plans", "subscriptions", "usage"]
