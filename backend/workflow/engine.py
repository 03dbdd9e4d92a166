"""Workflow Execution Engine: stack-based graph scheduler.

Traverses a workflow graph depth-first from one activity:

- Activities are popped from an explicit LIFO work list; when an activity
  produces several outcomes, the destination pushed last runs first.
- Any activity whose can_execute() is False halts the whole traversal.
- Event activities reached after the first one are not executed; they are
  collected as blocking activities and the traversal carries on with the
  rest of the work list.
- Every execution is wrapped in activity-executing / activity-executed
  broadcasts to all activities of the context. Any recipient may cancel
  the execution from the "executing" broadcast.

The engine mutates no persisted state; callers turn the returned blocking
activities into awaiting records.
"""

from typing import Callable, List

import structlog

from workflow.context import ActivityContext, CancellationFlag, WorkflowContext
from workflow.models import ActivityRecord

logger = structlog.get_logger(__name__)


def invoke_activities(
    workflow_context: WorkflowContext,
    action: Callable[[ActivityContext], None],
) -> None:
    """Run an action on every activity of a workflow, in declaration order."""
    for activity_context in workflow_context.activities:
        action(activity_context)


class WorkflowEngine:
    """Executes workflow graphs until they complete or block."""

    async def execute_workflow(
        self,
        workflow_context: WorkflowContext,
        activity: ActivityRecord,
    ) -> List[ActivityRecord]:
        """Execute a workflow starting at the given activity.

        Args:
            workflow_context: Context built for this execution
            activity: Activity to begin at; always executed, even if it is
                an event activity

        Returns:
            Distinct activities the traversal blocked on, in the order they
            were first reached
        """
        first_pass = True
        scheduled: List[ActivityRecord] = [activity]
        blocking: List[ActivityRecord] = []

        while scheduled:
            activity = scheduled.pop()
            activity_context = workflow_context.get_activity(activity.id)

            # Check if the current activity can execute.
            if not await activity_context.activity.can_execute(workflow_context, activity_context):
                logger.info(
                    "Activity cannot execute, halting workflow",
                    workflow_instance_id=workflow_context.instance.id,
                    activity_id=activity.id,
                    pending=len(scheduled),
                )
                break

            if not first_pass:
                if activity_context.activity.is_event():
                    blocking.append(activity)
                    continue
            else:
                first_pass = False

            cancellation = CancellationFlag()
            invoke_activities(
                workflow_context,
                lambda x: x.activity.on_activity_executing(workflow_context, activity_context, cancellation),
            )

            if cancellation.is_cancelled:
                logger.info(
                    "Activity execution cancelled",
                    workflow_instance_id=workflow_context.instance.id,
                    activity_id=activity.id,
                )
                continue

            outcomes = await activity_context.activity.run(workflow_context, activity_context)

            invoke_activities(
                workflow_context,
                lambda x: x.activity.on_activity_executed(workflow_context, activity_context),
            )

            for outcome in outcomes:
                transition = workflow_context.definition.find_transition(activity.id, outcome)
                if transition is None:
                    continue

                destination = workflow_context.definition.get_activity(transition.destination_activity_id)
                if destination is None:
                    logger.warning(
                        "Transition destination not found",
                        workflow_definition_id=workflow_context.definition.id,
                        source_activity_id=activity.id,
                        outcome=outcome,
                        destination_activity_id=transition.destination_activity_id,
                    )
                    continue

                scheduled.append(destination)

        # Two paths could block on the same activity.
        distinct: List[ActivityRecord] = []
        seen = set()
        for record in blocking:
            if record.id not in seen:
                seen.add(record.id)
                distinct.append(record)
        return distinct
