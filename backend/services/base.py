"""Base service for SQLAlchemy-backed stores.

Each store call runs in its own session and transaction, so a saved
workflow instance is durable as soon as save() returns.
"""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.base import TimestampedModel

ModelType = TypeVar("ModelType", bound=TimestampedModel)


class BaseService(Generic[ModelType]):
    """Generic lookups for any SQLAlchemy model.

    Usage:
        class SqlWorkflowDefinitionStore(BaseService[WorkflowDefinitionModel]):
            def __init__(self, session_factory):
                super().__init__(WorkflowDefinitionModel, session_factory)
    """

    def __init__(self, model: Type[ModelType], session_factory: async_sessionmaker):
        self.model = model
        self.session_factory = session_factory

    async def get_model(
        self,
        session: AsyncSession,
        id: str,
        include_deleted: bool = True,
    ) -> Optional[ModelType]:
        """Get a single row by ID within an open session."""
        query = select(self.model).where(self.model.id == id)
        if not include_deleted and hasattr(self.model, "is_deleted"):
            query = query.where(self.model.is_deleted == False)  # noqa: E712
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def exists(self, id: str) -> bool:
        """Check if a row exists (not soft-deleted)."""
        async with self.session_factory() as session:
            return await self.get_model(session, id, include_deleted=False) is not None
