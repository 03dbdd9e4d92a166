"""SQL workflow definition store."""

from typing import List, Optional

import structlog
from sqlalchemy import func, select

from db.models.workflow_definition import WorkflowDefinitionModel, WorkflowStartActivityModel
from services.base import BaseService
from workflow.models import WorkflowDefinition
from workflow.stores import WorkflowDefinitionStore

logger = structlog.get_logger(__name__)


class SqlWorkflowDefinitionStore(BaseService[WorkflowDefinitionModel], WorkflowDefinitionStore):
    """Stores definitions as JSON documents plus an index of start activity types."""

    def __init__(self, session_factory):
        super().__init__(WorkflowDefinitionModel, session_factory)

    async def get_by_id(self, definition_id: str) -> Optional[WorkflowDefinition]:
        """Get a definition, including disabled or removed ones.

        Instances that are already running keep resolving their definition.
        """
        async with self.session_factory() as session:
            row = await self.get_model(session, definition_id)
            if row is None:
                return None
            return WorkflowDefinition.model_validate(row.definition)

    async def find_by_start_activity(self, activity_name: str) -> List[WorkflowDefinition]:
        start_ids = select(WorkflowStartActivityModel.definition_id).where(
            func.lower(WorkflowStartActivityModel.activity_name) == activity_name.lower()
        )
        query = (
            select(WorkflowDefinitionModel)
            .where(
                WorkflowDefinitionModel.id.in_(start_ids),
                WorkflowDefinitionModel.is_enabled == True,  # noqa: E712
                WorkflowDefinitionModel.is_deleted == False,  # noqa: E712
            )
            .order_by(WorkflowDefinitionModel.created_at, WorkflowDefinitionModel.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [WorkflowDefinition.model_validate(row.definition) for row in result.scalars().all()]

    async def save(self, definition: WorkflowDefinition) -> None:
        """Insert or replace a definition and its start activity index."""
        document = definition.model_dump(mode="json")
        async with self.session_factory() as session:
            async with session.begin():
                row = await self.get_model(session, definition.id)
                if row is None:
                    row = WorkflowDefinitionModel(id=definition.id, name=definition.name, definition=document)
                    session.add(row)
                else:
                    row.name = definition.name
                    row.definition = document
                    row.version += 1

                row.start_activities = [
                    WorkflowStartActivityModel(activity_id=activity.id, activity_name=activity.name)
                    for activity in definition.start_activities
                ]

        logger.info("Workflow definition saved", workflow_definition_id=definition.id)

    async def set_enabled(self, definition_id: str, enabled: bool) -> bool:
        """Enable or disable starting new instances from a definition."""
        async with self.session_factory() as session:
            async with session.begin():
                row = await self.get_model(session, definition_id, include_deleted=False)
                if row is None:
                    return False
                row.is_enabled = enabled
        return True

    async def remove(self, definition_id: str) -> bool:
        """Soft-delete a definition; suspended instances can still finish."""
        async with self.session_factory() as session:
            async with session.begin():
                row = await self.get_model(session, definition_id, include_deleted=False)
                if row is None:
                    return False
                row.soft_delete()
        logger.info("Workflow definition removed", workflow_definition_id=definition_id)
        return True
