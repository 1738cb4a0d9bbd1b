"""Usage API routes."""

from packages.usage.routes import usage

__all__ = ["usage"]
