"""
Operation-scoped database sessions.

A connection is checked out only for the span of one repository call, or of
one ``transaction()`` block, and never across a payment gateway round trip or
a wait on the subscription lock.

    async with get_session() as session:
        entity = await session.get(SubscriptionEntity, subscription_id)

    async with transaction():
        await subscriptions.apply_state(...)
        await processed_events.mark_processed(...)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from common.core.otel_axiom_exporter import get_logger
from common.db.context import (
    get_current_session,
    is_readonly_forced,
    reset_current_session,
    set_current_session,
)
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly

logger = get_logger(__name__)


def _factory(readonly: bool) -> async_sessionmaker:
    return AsyncSessionLocalReadonly if readonly else AsyncSessionLocal


async def _finish(session: AsyncSession, readonly: bool) -> None:
    if not readonly:
        await session.commit()


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a unit of work shared by every repository call inside the block.

    Commits when the block exits cleanly and rolls back when it raises; the
    exception is re-raised. Read-only blocks (explicit or under ``@readonly``)
    never commit.
    """
    ro = readonly or is_readonly_forced()
    started = time.perf_counter()

    async with _factory(ro)() as session:
        token = set_current_session(session, readonly=ro)
        logger.debug(
            "Unit of work opened",
            extra={"readonly": ro, "acquire_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        try:
            yield session
            await _finish(session, ro)
        except Exception as exc:
            await session.rollback()
            logger.warning(f"Unit of work rolled back: {type(exc).__name__}: {exc}")
            raise
        finally:
            reset_current_session(token, readonly=ro)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """Session for one operation: the enclosing transaction's, or a short-lived one."""
    ro = readonly or is_readonly_forced()

    shared = get_current_session(readonly=ro)
    if shared is not None:
        yield shared
        return

    async with _factory(ro)() as session:
        try:
            yield session
            await _finish(session, ro)
        except Exception:
            await session.rollback()
            raise
