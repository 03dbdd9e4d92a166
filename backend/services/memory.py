"""In-memory stores.

Useful for tests and single-process embedding. Records are deep-copied on
the way in and out so callers never share mutable state with the store,
mirroring what a database round-trip gives.
"""

from typing import Dict, List, Optional

from core.exceptions import ConcurrencyError
from workflow.models import WorkflowDefinition, WorkflowInstanceRecord
from workflow.stores import WorkflowDefinitionStore, WorkflowInstanceStore


class InMemoryWorkflowDefinitionStore(WorkflowDefinitionStore):
    def __init__(self, definitions: Optional[List[WorkflowDefinition]] = None):
        self._definitions: Dict[str, WorkflowDefinition] = {}
        for definition in definitions or []:
            self._definitions[definition.id] = definition.model_copy(deep=True)

    async def get_by_id(self, definition_id: str) -> Optional[WorkflowDefinition]:
        definition = self._definitions.get(definition_id)
        return definition.model_copy(deep=True) if definition else None

    async def find_by_start_activity(self, activity_name: str) -> List[WorkflowDefinition]:
        name = activity_name.lower()
        return [
            definition.model_copy(deep=True)
            for definition in self._definitions.values()
            if any(a.name.lower() == name for a in definition.start_activities)
        ]

    async def save(self, definition: WorkflowDefinition) -> None:
        self._definitions[definition.id] = definition.model_copy(deep=True)


class InMemoryWorkflowInstanceStore(WorkflowInstanceStore):
    def __init__(self):
        self._instances: Dict[str, WorkflowInstanceRecord] = {}

    def __len__(self) -> int:
        return len(self._instances)

    async def get_by_id(self, instance_id: str) -> Optional[WorkflowInstanceRecord]:
        instance = self._instances.get(instance_id)
        return instance.model_copy(deep=True) if instance else None

    async def find_awaiting(
        self, activity_name: str, correlation_id: Optional[str] = None
    ) -> List[WorkflowInstanceRecord]:
        name = activity_name.lower()
        return [
            instance.model_copy(deep=True)
            for instance in self._instances.values()
            if any(a.activity_name.lower() == name for a in instance.awaiting_activities)
            and (correlation_id is None or instance.correlation_id == correlation_id)
        ]

    def _check_version(self, instance: WorkflowInstanceRecord) -> None:
        stored = self._instances.get(instance.id)
        stored_version = stored.version if stored else 0
        if stored_version != instance.version:
            raise ConcurrencyError(
                f"Workflow instance {instance.id} changed since version {instance.version}"
            )

    async def save(self, instance: WorkflowInstanceRecord) -> None:
        self._check_version(instance)
        instance.version += 1
        self._instances[instance.id] = instance.model_copy(deep=True)

    async def delete(self, instance: WorkflowInstanceRecord) -> None:
        if instance.version == 0:
            return
        self._check_version(instance)
        del self._instances[instance.id]
