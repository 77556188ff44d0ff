"""Subscription providers."""
