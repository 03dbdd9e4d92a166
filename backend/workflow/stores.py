"""Persistence contracts consumed by the workflow manager.

Implementations live in services/. The instance store is the point of
concurrency control: save() and delete() must reject an instance whose
version no longer matches the stored one (ConcurrencyError), so at most
one resume per instance can win.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from workflow.models import WorkflowDefinition, WorkflowInstanceRecord


class WorkflowDefinitionStore(ABC):
    """Read access to workflow definitions."""

    @abstractmethod
    async def get_by_id(self, definition_id: str) -> Optional[WorkflowDefinition]:
        ...

    @abstractmethod
    async def find_by_start_activity(self, activity_name: str) -> List[WorkflowDefinition]:
        """Definitions having a start activity of the given type (case-insensitive)."""
        ...

    @abstractmethod
    async def save(self, definition: WorkflowDefinition) -> None:
        ...


class WorkflowInstanceStore(ABC):
    """Durable checkpoints of suspended workflow instances."""

    @abstractmethod
    async def get_by_id(self, instance_id: str) -> Optional[WorkflowInstanceRecord]:
        ...

    @abstractmethod
    async def find_awaiting(
        self, activity_name: str, correlation_id: Optional[str] = None
    ) -> List[WorkflowInstanceRecord]:
        """Instances suspended on an activity of the given type (case-insensitive).

        When correlation_id is given only instances with that correlation
        id are returned.
        """
        ...

    @abstractmethod
    async def save(self, instance: WorkflowInstanceRecord) -> None:
        """Insert or update; bumps instance.version on success."""
        ...

    @abstractmethod
    async def delete(self, instance: WorkflowInstanceRecord) -> None:
        ...
