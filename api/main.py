import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    ConflictingWrite,
    GatewayUnavailable,
    MalformedEvent,
    NotFoundError,
    PeriodClosed,
    SubscriptionConflict,
    UnsupportedCurrency,
    UnsupportedJurisdiction,
    ValidationError,
    VerificationFailed,
)
from api.v1.routes.router import api_router
from common.db.session import init_db
from common.providers.rate_limiter.limiter import limiter
from packages.billing.services.plans_service import PlansService
from packages.billing.state_machine import InvalidTransition

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()
# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Get logger
logger = get_logger(__name__)

# First match wins, so subclasses go before their bases
EXCEPTION_STATUS_CODES: list[tuple[type[AppException], int]] = [
    (VerificationFailed, status.HTTP_400_BAD_REQUEST),
    (MalformedEvent, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictingWrite, status.HTTP_409_CONFLICT),
    (SubscriptionConflict, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PeriodClosed, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UnsupportedCurrency, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UnsupportedJurisdiction, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (GatewayUnavailable, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: AppException) -> int:
    for exc_type, status_code in EXCEPTION_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}",
            extra={"error_type": type(exc).__name__, "path": request.url.path},
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    await init_db()
    logger.info("Database initialized")
    seeded = await PlansService().seed_default_catalog()
    if seeded:
        logger.info(f"Seeded {len(seeded)} plans")
    yield
    # Shutdown
    logger.info("Shutting down application...")


# Only expose OpenAPI docs in local development
docs_url = "/docs" if settings.environment == "local" else None
redoc_url = "/redoc" if settings.environment == "local" else None
openapi_url = "/openapi.json" if settings.environment == "local" else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)
app.add_middleware(SlowAPIMiddleware)


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)
# Add ASGI middleware for context propagation
app.add_middleware(OpenTelemetryMiddleware)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


# Internal health endpoint for k8s probes - not under /api/v1 to avoid external spam
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
