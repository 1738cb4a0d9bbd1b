from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Entity-to-domain repository over the ledger tables.

    Pass ``db_session`` to pin every call to a caller-owned session (tests,
    one-off scripts). Without it, each call joins the enclosing
    ``transaction()`` or runs in a short-lived session of its own.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._pinned_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._pinned_session is not None:
            yield self._pinned_session
            return
        async with get_session() as session:
            yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        return [self._entity_to_domain(entity) for entity in entities]

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        """Fresh read by primary key; identity-map copies are overwritten."""
        query = (
            select(self.entity_class)
            .where(self.entity_class.id == id)
            .execution_options(populate_existing=True)
        )
        async with self._get_session() as session:
            entity = (await session.execute(query)).scalar_one_or_none()
        return self._entity_to_domain(entity) if entity is not None else None

    @trace_span
    async def page(
        self, *criteria: Any, limit: int = 50, offset: int = 0
    ) -> List[DomainModelType]:
        """Newest-first page of rows matching ``criteria``."""
        query = (
            select(self.entity_class)
            .where(*criteria)
            .order_by(self.entity_class.created_at.desc(), self.entity_class.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        db_obj = self.entity_class(**create_model.model_dump(exclude_none=True))
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def update(
        self, id: int, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Apply the fields set on ``update_model``; unset fields are left alone."""
        values = update_model.model_dump(exclude_unset=True)
        if values:
            async with self._get_session() as session:
                await session.execute(
                    update(self.entity_class).where(self.entity_class.id == id).values(values)
                )
                await session.flush()
        return await self.get(id)
