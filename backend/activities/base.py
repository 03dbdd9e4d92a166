"""
Base activity interface for all workflow activity implementations.

Every activity type (set variable, branch, signal, etc.) inherits from
Activity and implements execute(). Definition-time properties are handed
to the constructor; the engine only ever talks to the capability set
defined here and never branches on concrete types.
"""

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

if TYPE_CHECKING:
    from workflow.context import ActivityContext, CancellationFlag, WorkflowContext

logger = structlog.get_logger(__name__)

DONE = "Done"


class Activity(ABC):
    """
    Abstract base class for all activity behaviors.

    Subclasses must implement:
    - execute(workflow_context, activity_context) -> list of outcomes
    - name (class property, the type name used in definitions)
    - display_name (class property)
    """

    name: str = "Activity"
    display_name: str = "Activity"
    description: str = "Abstract activity"
    category: str = "Primitives"

    def __init__(self, properties: Optional[Dict[str, Any]] = None):
        self.properties: Dict[str, Any] = dict(properties or {})

    def is_event(self) -> bool:
        """Event activities only resume through an external trigger."""
        return False

    async def can_execute(
        self,
        workflow_context: "WorkflowContext",
        activity_context: "ActivityContext",
    ) -> bool:
        return True

    @abstractmethod
    async def execute(
        self,
        workflow_context: "WorkflowContext",
        activity_context: "ActivityContext",
    ) -> List[str]:
        """
        Execute the activity.

        Args:
            workflow_context: The running workflow (state, definition, evaluator)
            activity_context: This activity's record and behavior

        Returns:
            Outcome names selecting which transitions to follow
        """
        pass

    async def run(
        self,
        workflow_context: "WorkflowContext",
        activity_context: "ActivityContext",
    ) -> List[str]:
        """
        Run the activity with timing and logging.

        This is the entry point called by the scheduler. Failures are
        logged and re-raised to the caller.
        """
        start = time.monotonic()
        try:
            outcomes = list(await self.execute(workflow_context, activity_context))
        except Exception as e:
            logger.error(
                "Activity failed",
                activity_type=self.name,
                activity_id=activity_context.record.id,
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        logger.debug(
            "Activity executed",
            activity_type=self.name,
            activity_id=activity_context.record.id,
            outcomes=outcomes,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return outcomes

    # ─── Lifecycle notifications ───────────────────────────

    def on_workflow_starting(
        self, workflow_context: "WorkflowContext", cancellation: "CancellationFlag"
    ) -> None:
        pass

    def on_workflow_started(self, workflow_context: "WorkflowContext") -> None:
        pass

    def on_workflow_resuming(
        self, workflow_context: "WorkflowContext", cancellation: "CancellationFlag"
    ) -> None:
        pass

    def on_workflow_resumed(self, workflow_context: "WorkflowContext") -> None:
        pass

    def on_activity_executing(
        self,
        workflow_context: "WorkflowContext",
        activity_context: "ActivityContext",
        cancellation: "CancellationFlag",
    ) -> None:
        pass

    def on_activity_executed(
        self,
        workflow_context: "WorkflowContext",
        activity_context: "ActivityContext",
    ) -> None:
        pass

    @classmethod
    def get_properties_schema(cls) -> Dict[str, Any]:
        """
        Return JSON schema for the activity's definition-time properties.

        Override in subclasses to define expected property shape.
        """
        return {"type": "object", "properties": {}}


class EventActivity(Activity):
    """An activity that can only be entered through an external event.

    Reached during traversal (other than as the first activity), an event
    activity suspends the workflow instead of executing inline.
    """

    category = "Events"

    def is_event(self) -> bool:
        return True
