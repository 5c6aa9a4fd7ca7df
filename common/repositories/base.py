from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Optional, List, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from pydantic import BaseModel

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository over an entity class and its pydantic domain model.

    Sessions are acquired per operation through common.db.scoped.get_session(),
    so a call inside `transaction()` joins that transaction and a standalone
    call commits on its own.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        async with get_session() as session:
            yield session

    def _add_user_filter(self, query, user_id: int):
        """Scope a query to rows owned by one user."""
        return query.where(self.entity_class.user_id == user_id)

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        return [self._entity_to_domain(entity) for entity in entities]

    @trace_span
    async def get(
        self, id: int, user_id: Optional[int] = None
    ) -> Optional[DomainModelType]:
        query = (
            select(self.entity_class)
            .where(self.entity_class.id == id)
            .execution_options(populate_existing=True)
        )

        if user_id is not None:
            query = self._add_user_filter(query, user_id)

        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Create a new entity from a typed create model."""
        data = create_model.model_dump(exclude_none=True)
        db_obj = self.entity_class(**data)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def update(
        self, id: int, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Update an entity with a typed update model. Unset fields are left alone."""
        data = update_model.model_dump(exclude_unset=True)
        if not data:
            return await self.get(id)

        async with self._get_session() as session:
            await session.execute(
                update(self.entity_class).where(self.entity_class.id == id).values(data)
            )
            await session.flush()
        return await self.get(id)
