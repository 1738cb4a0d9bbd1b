from fastapi import APIRouter, Request, Response, status
from sqlalchemy import func, select

from common.core.otel_axiom_exporter import get_logger
from common.db.scoped import get_session
from common.providers.rate_limiter.limiter import limiter
from packages.billing.models.database.plan import PlanEntity

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def liveness(request: Request):
    return {"status": "healthy", "service": "billing-engine"}


@router.get("/ledger")
@limiter.limit("100/minute")
async def ledger_readiness(request: Request, response: Response):
    """Readiness of the ledger database, with the size of the loaded plan catalog."""
    try:
        async with get_session(readonly=True) as session:
            plan_count = await session.scalar(select(func.count(PlanEntity.id)))
    except Exception as e:
        logger.error(f"Ledger readiness check failed: {e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "ledger": "unreachable"}
    return {"status": "healthy", "ledger": "connected", "plans": plan_count}
