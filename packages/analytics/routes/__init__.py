"""Analytics API routes."""

from packages.analytics.routes import revenue

__all__ = ["revenue"]
