"""Billing API routes."""

from packages.billing.routes import billing, webhooks, plans

__all__ = ["billing", "webhooks", "plans"]
