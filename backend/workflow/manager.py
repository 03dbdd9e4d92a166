"""Workflow Manager: lifecycle orchestration.

Starts workflows, resumes suspended instances and routes external events
to either action. The manager owns persistence decisions: an instance is
saved while it awaits activities and deleted once it runs to completion.

Event routing (trigger_event):
1. Resolve the event name to an activity type; unknown names are logged
   and ignored
2. Resume every instance awaiting that activity type, merging the event
   input into its state first
3. Only then start every definition whose start activity has that type
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from activities.library import ActivityLibrary
from core.exceptions import ConfigurationError, NotFoundError
from core.logging_config import bind_workflow
from workflow.context import (
    ActivityContext,
    CancellationFlag,
    ExpressionEvaluator,
    WorkflowContext,
    WorkflowContextProvider,
)
from workflow.engine import WorkflowEngine, invoke_activities
from workflow.models import (
    ActivityRecord,
    AwaitingActivityRecord,
    WorkflowDefinition,
    WorkflowInstanceRecord,
    WorkflowState,
)
from workflow.stores import WorkflowDefinitionStore, WorkflowInstanceStore

logger = structlog.get_logger(__name__)


class WorkflowManager:
    """Starts, resumes and triggers workflows."""

    def __init__(
        self,
        activity_library: ActivityLibrary,
        definition_store: WorkflowDefinitionStore,
        instance_store: WorkflowInstanceStore,
        context_providers: Optional[Iterable[WorkflowContextProvider]] = None,
        engine: Optional[WorkflowEngine] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
    ):
        self._activity_library = activity_library
        self._definition_store = definition_store
        self._instance_store = instance_store
        self._context_providers = list(context_providers or [])
        self._engine = engine or WorkflowEngine()
        self._evaluator = evaluator or ExpressionEvaluator()

    # ─── Contexts ──────────────────────────────────────────

    def create_workflow_context(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceRecord,
    ) -> WorkflowContext:
        context = WorkflowContext(
            definition=definition,
            instance=instance,
            activities=[self.create_activity_context(a) for a in definition.activities],
            evaluator=self._evaluator,
        )

        for provider in self._context_providers:
            provider.configure(context)

        return context

    def create_activity_context(self, record: ActivityRecord) -> ActivityContext:
        activity = self._activity_library.instantiate(record.name, record.properties)
        return ActivityContext(record=record, activity=activity)

    # ─── Events ────────────────────────────────────────────

    async def trigger_event(
        self,
        name: str,
        input: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Route an external event to suspended instances and startable definitions."""
        if self._activity_library.get_activity_by_name(name) is None:
            logger.error("Activity was not found", activity_name=name)
            return

        workflows_to_start = await self._definition_store.find_by_start_activity(name)
        awaiting_instances = await self._instance_store.find_awaiting(name, correlation_id)

        if not workflows_to_start and not awaiting_instances:
            logger.debug("No workflow subscribed to event", activity_name=name)
            return

        # Resume pending workflows before starting new ones.
        for instance in awaiting_instances:
            if input:
                instance.state.merge_input(input)

            await self.resume_workflow(instance, activity_name=name)

        for definition in workflows_to_start:
            start_activity = next(
                (
                    a for a in definition.start_activities
                    if a.name.lower() == name.lower()
                ),
                None,
            )

            if start_activity is not None:
                await self.start_workflow(definition, start_activity, input, correlation_id)

    # ─── Resume ────────────────────────────────────────────

    async def resume_workflow(
        self,
        instance: WorkflowInstanceRecord,
        activity_name: Optional[str] = None,
    ) -> None:
        """Resume an instance at its awaiting activities.

        Args:
            instance: The suspended instance
            activity_name: Only resume awaiting activities of this type;
                all awaiting activities are resumed when omitted
        """
        for awaiting in list(instance.awaiting_activities):
            if activity_name is not None and awaiting.activity_name.lower() != activity_name.lower():
                continue
            await self.resume_awaiting_activity(instance, awaiting)

    async def resume_awaiting_activity(
        self,
        instance: WorkflowInstanceRecord,
        awaiting: AwaitingActivityRecord,
    ) -> Optional[WorkflowContext]:
        """Resume an instance at one awaiting activity."""
        definition = await self._definition_store.get_by_id(instance.definition_id)
        if definition is None:
            raise NotFoundError(f"Workflow definition {instance.definition_id} not found")

        activity = definition.get_activity(awaiting.activity_id)
        if activity is None:
            logger.warning(
                "Awaiting activity no longer exists in definition, dropping it",
                workflow_definition_id=definition.id,
                workflow_instance_id=instance.id,
                activity_id=awaiting.activity_id,
            )
            instance.remove_awaiting(awaiting)
            await self._persist(instance, [])
            return None

        with bind_workflow(definition.id, instance.id):
            return await self._resume(definition, instance, awaiting, activity)

    async def _resume(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceRecord,
        awaiting: AwaitingActivityRecord,
        activity: ActivityRecord,
    ) -> WorkflowContext:
        context = self.create_workflow_context(definition, instance)

        cancellation = CancellationFlag()
        invoke_activities(context, lambda x: x.activity.on_workflow_resuming(context, cancellation))

        if cancellation.is_cancelled:
            logger.info("Workflow resume cancelled", activity_id=activity.id)
            return context

        invoke_activities(context, lambda x: x.activity.on_workflow_resumed(context))

        instance.remove_awaiting(awaiting)

        blocked_on = await self._engine.execute_workflow(context, activity)

        logger.info(
            "Workflow resumed",
            activity_id=activity.id,
            blocked_on=[a.id for a in blocked_on],
        )

        await self._persist(instance, blocked_on)
        return context

    # ─── Start ─────────────────────────────────────────────

    async def start_workflow(
        self,
        definition: WorkflowDefinition,
        start_activity: Optional[ActivityRecord] = None,
        input: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ) -> WorkflowContext:
        """Start a new workflow instance.

        Args:
            definition: Definition to run
            start_activity: Activity to start at; defaults to the
                definition's start activity
            input: Initial workflow input
            correlation_id: Key distinguishing this instance when it waits
                on events

        Returns:
            The context of the run

        Raises:
            ConfigurationError: No start activity given and the definition
                has none, or the given one is not part of the definition
        """
        if start_activity is None:
            start_activity = definition.start_activity

            if start_activity is None:
                raise ConfigurationError(
                    f"Workflow with ID {definition.id} does not have a start activity."
                )

        if definition.get_activity(start_activity.id) is None:
            raise ConfigurationError(
                f"Activity {start_activity.id} is not part of workflow {definition.id}."
            )

        instance = WorkflowInstanceRecord(
            definition_id=definition.id,
            state=WorkflowState(input=dict(input or {})),
            correlation_id=correlation_id,
        )

        with bind_workflow(definition.id, instance.id):
            return await self._start(definition, instance, start_activity)

    async def _start(
        self,
        definition: WorkflowDefinition,
        instance: WorkflowInstanceRecord,
        start_activity: ActivityRecord,
    ) -> WorkflowContext:
        context = self.create_workflow_context(definition, instance)

        cancellation = CancellationFlag()
        invoke_activities(context, lambda x: x.activity.on_workflow_starting(context, cancellation))

        if cancellation.is_cancelled:
            logger.info("Workflow start cancelled")
            return context

        invoke_activities(context, lambda x: x.activity.on_workflow_started(context))

        blocked_on = await self._engine.execute_workflow(context, start_activity)

        logger.info(
            "Workflow started",
            start_activity_id=start_activity.id,
            blocked_on=[a.id for a in blocked_on],
        )

        # A run that blocked nowhere completed in one pass; nothing to keep.
        if blocked_on:
            instance.add_awaiting(blocked_on)
            await self._instance_store.save(instance)

        return context

    async def _persist(
        self,
        instance: WorkflowInstanceRecord,
        blocked_on: List[ActivityRecord],
    ) -> None:
        """Delete a finished instance, otherwise save it with its new awaiting set."""
        if not blocked_on and not instance.awaiting_activities:
            await self._instance_store.delete(instance)
            logger.info("Workflow completed", workflow_instance_id=instance.id)
            return

        instance.add_awaiting(blocked_on)
        await self._instance_store.save(instance)
