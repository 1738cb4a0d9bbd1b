from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.analytics.routes import revenue
from packages.billing.routes import billing, webhooks, plans
from packages.money.routes import money
from packages.usage.routes import usage

api_router = APIRouter()

# Health check
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (signature verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Plans and currencies (public pricing info)
api_router.include_router(plans.router, prefix="/billing/plans", tags=["billing"])
api_router.include_router(money.router, prefix="/money", tags=["money"])

# Subscriptions, purchases and ledger
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])

# Metered usage
api_router.include_router(usage.router, tags=["usage"])

# Analytics
api_router.include_router(revenue.router, prefix="/analytics", tags=["analytics"])
