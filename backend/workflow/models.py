"""Workflow definition and instance records.

Definition records are the static graph: activities (nodes) and
transitions (edges keyed by source activity + outcome). Instance records
are the durable checkpoint of one execution: serialized state plus the
activities it is currently suspended on.

Workflow Definition Schema (as stored / loaded from JSON):
{
    "id": "approval",
    "name": "Approval flow",
    "activities": [
        {"id": "a1", "name": "SetVariable", "is_start": true,
         "properties": {"variables": {"status": "pending"}}},
        {"id": "a2", "name": "Signal", "properties": {"output_variable": "approval"}},
        {"id": "a3", "name": "Log", "properties": {"message": "approved"}}
    ],
    "transitions": [
        {"source_activity_id": "a1", "source_outcome_name": "Done",
         "destination_activity_id": "a2"},
        {"source_activity_id": "a2", "source_outcome_name": "Done",
         "destination_activity_id": "a3"}
    ]
}
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class ActivityRecord(BaseModel):
    """Static configuration of one graph node."""

    id: str = Field(min_length=1, description="Activity ID, unique within a definition")
    name: str = Field(min_length=1, description="Activity type name in the activity library")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Definition-time properties")
    is_start: bool = Field(default=False, description="Whether the workflow can start here")


class Transition(BaseModel):
    """Edge from (source activity, outcome) to a destination activity."""

    source_activity_id: str
    source_outcome_name: str
    destination_activity_id: str


class WorkflowDefinition(BaseModel):
    """The static workflow graph."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = ""
    activities: List[ActivityRecord] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_graph(self) -> "WorkflowDefinition":
        seen = set()
        for activity in self.activities:
            if activity.id in seen:
                raise ValueError(f"Duplicate activity id: {activity.id}")
            seen.add(activity.id)

        # Dangling destinations are tolerated and skipped at execution time.
        for transition in self.transitions:
            if transition.source_activity_id not in seen:
                raise ValueError(
                    f"Transition source '{transition.source_activity_id}' is not an activity"
                )
        return self

    def get_activity(self, activity_id: str) -> Optional[ActivityRecord]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    @property
    def start_activity(self) -> Optional[ActivityRecord]:
        """First activity flagged as a start activity, if any."""
        return next((a for a in self.activities if a.is_start), None)

    @property
    def start_activities(self) -> List[ActivityRecord]:
        return [a for a in self.activities if a.is_start]

    def find_transition(self, source_activity_id: str, outcome: str) -> Optional[Transition]:
        for transition in self.transitions:
            if (
                transition.source_activity_id == source_activity_id
                and transition.source_outcome_name == outcome
            ):
                return transition
        return None


class WorkflowState(BaseModel):
    """Serialized input and variables of one workflow instance."""

    input: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)

    def merge_input(self, data: Dict[str, Any]) -> None:
        """Merge new input by key; newer values win, other keys are kept."""
        self.input.update(data)


class AwaitingActivityRecord(BaseModel):
    """Marks an activity a workflow instance is suspended on."""

    activity_id: str
    activity_name: str

    @classmethod
    def from_activity(cls, activity: ActivityRecord) -> "AwaitingActivityRecord":
        return cls(activity_id=activity.id, activity_name=activity.name)


class WorkflowInstanceRecord(BaseModel):
    """Persisted runtime state of one workflow execution."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    definition_id: str
    correlation_id: Optional[str] = None
    state: WorkflowState = Field(default_factory=WorkflowState)
    awaiting_activities: List[AwaitingActivityRecord] = Field(default_factory=list)
    # Optimistic concurrency token; 0 means the instance was never saved.
    version: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_awaiting(self, activity_id: str) -> bool:
        return any(a.activity_id == activity_id for a in self.awaiting_activities)

    def add_awaiting(self, activities: Iterable[ActivityRecord]) -> None:
        """Record blocking activities, skipping ones already awaited."""
        for activity in activities:
            if not self.is_awaiting(activity.id):
                self.awaiting_activities.append(AwaitingActivityRecord.from_activity(activity))

    def remove_awaiting(self, awaiting: AwaitingActivityRecord) -> None:
        self.awaiting_activities = [
            a for a in self.awaiting_activities if a.activity_id != awaiting.activity_id
        ]
