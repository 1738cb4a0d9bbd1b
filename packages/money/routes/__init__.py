"""Money API routes."""

from packages.money.routes import money

__all__ = ["money"]
