"""SQL workflow instance store with optimistic concurrency."""

from typing import List, Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from core.exceptions import ConcurrencyError
from db.models.workflow_instance import AwaitingActivityModel, WorkflowInstanceModel
from services.base import BaseService
from workflow.models import AwaitingActivityRecord, WorkflowInstanceRecord, WorkflowState
from workflow.stores import WorkflowInstanceStore

logger = structlog.get_logger(__name__)


def _to_record(row: WorkflowInstanceModel) -> WorkflowInstanceRecord:
    return WorkflowInstanceRecord(
        id=row.id,
        definition_id=row.definition_id,
        correlation_id=row.correlation_id,
        state=WorkflowState.model_validate(row.state or {}),
        awaiting_activities=[
            AwaitingActivityRecord(activity_id=a.activity_id, activity_name=a.activity_name)
            for a in row.awaiting_activities
        ],
        version=row.version,
        created_at=row.created_at,
    )


class SqlWorkflowInstanceStore(BaseService[WorkflowInstanceModel], WorkflowInstanceStore):
    """Persists suspended instances; every write checks the instance version."""

    def __init__(self, session_factory):
        super().__init__(WorkflowInstanceModel, session_factory)

    async def get_by_id(self, instance_id: str) -> Optional[WorkflowInstanceRecord]:
        async with self.session_factory() as session:
            row = await self.get_model(session, instance_id)
            return _to_record(row) if row is not None else None

    async def find_awaiting(
        self, activity_name: str, correlation_id: Optional[str] = None
    ) -> List[WorkflowInstanceRecord]:
        awaiting_ids = select(AwaitingActivityModel.instance_id).where(
            func.lower(AwaitingActivityModel.activity_name) == activity_name.lower()
        )
        query = select(WorkflowInstanceModel).where(WorkflowInstanceModel.id.in_(awaiting_ids))
        if correlation_id is not None:
            query = query.where(WorkflowInstanceModel.correlation_id == correlation_id)
        query = query.order_by(WorkflowInstanceModel.created_at, WorkflowInstanceModel.id)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_to_record(row) for row in result.scalars().all()]

    async def save(self, instance: WorkflowInstanceRecord) -> None:
        """Insert a new instance or update it if the stored version still matches.

        Raises:
            ConcurrencyError: The instance was saved or deleted by someone else
        """
        state = instance.state.model_dump(mode="json")

        try:
            await self._write(instance, state)
        except IntegrityError as e:
            raise ConcurrencyError(f"Workflow instance {instance.id} was already saved") from e

        instance.version += 1
        logger.debug(
            "Workflow instance saved",
            workflow_instance_id=instance.id,
            version=instance.version,
            awaiting=[a.activity_id for a in instance.awaiting_activities],
        )

    async def _write(self, instance: WorkflowInstanceRecord, state: dict) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                if instance.version == 0:
                    session.add(
                        WorkflowInstanceModel(
                            id=instance.id,
                            definition_id=instance.definition_id,
                            correlation_id=instance.correlation_id,
                            state=state,
                            version=1,
                            created_at=instance.created_at,
                        )
                    )
                else:
                    result = await session.execute(
                        update(WorkflowInstanceModel)
                        .where(
                            WorkflowInstanceModel.id == instance.id,
                            WorkflowInstanceModel.version == instance.version,
                        )
                        .values(
                            correlation_id=instance.correlation_id,
                            state=state,
                            version=instance.version + 1,
                        )
                    )
                    if result.rowcount == 0:
                        raise ConcurrencyError(
                            f"Workflow instance {instance.id} changed since version {instance.version}"
                        )
                    await session.execute(
                        delete(AwaitingActivityModel).where(AwaitingActivityModel.instance_id == instance.id)
                    )

                for position, awaiting in enumerate(instance.awaiting_activities):
                    session.add(
                        AwaitingActivityModel(
                            instance_id=instance.id,
                            activity_id=awaiting.activity_id,
                            activity_name=awaiting.activity_name,
                            position=position,
                        )
                    )

    async def delete(self, instance: WorkflowInstanceRecord) -> None:
        """Delete an instance if the stored version still matches.

        Deleting an instance that was never saved is a no-op.
        """
        if instance.version == 0:
            return

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(AwaitingActivityModel).where(AwaitingActivityModel.instance_id == instance.id)
                )
                result = await session.execute(
                    delete(WorkflowInstanceModel).where(
                        WorkflowInstanceModel.id == instance.id,
                        WorkflowInstanceModel.version == instance.version,
                    )
                )
                if result.rowcount == 0:
                    raise ConcurrencyError(
                        f"Workflow instance {instance.id} changed since version {instance.version}"
                    )

        logger.debug("Workflow instance deleted", workflow_instance_id=instance.id)
