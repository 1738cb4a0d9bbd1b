from uuid import uuid4

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def async_database_url(url: str) -> str:
    """Point a plain postgres URL at the asyncpg driver; other URLs pass through."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def build_engine(url: str) -> AsyncEngine:
    """
    Create the ledger engine.

    Workers run with NullPool so every scan gets a fresh connection; the API
    keeps a sized pool. asyncpg needs unique prepared statement names when
    sitting behind pgbouncer.
    """
    options: dict = {"echo": settings.debug, "pool_pre_ping": True}

    if url.startswith("postgresql+asyncpg"):
        options["pool_recycle"] = 3600
        options["connect_args"] = {
            "prepared_statement_name_func": lambda: f"__billing_{uuid4()}__",
        }

    if settings.db_use_nullpool:
        options["poolclass"] = pool.NullPool
        logger.info("Ledger engine without pooling", extra={"pool": "null"})
    elif url.startswith("postgresql"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_pool_overflow
        logger.info(
            f"Ledger engine pool_size={settings.db_pool_size} "
            f"max_overflow={settings.db_pool_overflow}"
        )

    return create_async_engine(url, **options)


ASYNC_DATABASE_URL = async_database_url(settings.database_url)
engine = build_engine(ASYNC_DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Analytics reads go through their own factory so a replica can be swapped in
AsyncSessionLocalReadonly = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db() -> None:
    """Create missing tables. Entities register on Base when their packages are imported."""
    from common.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Ledger schema ready ({len(Base.metadata.tables)} tables)")
