"""Control-flow and data activities.

Set variables, branch on an expression, fork into several outcomes and
log messages from inside a workflow.
"""

from typing import Any, Dict, List

import structlog

from activities.base import DONE, Activity

logger = structlog.get_logger(__name__)


class SetVariableActivity(Activity):
    """Assign workflow variables.

    Properties:
        variables: Dict of variable name -> value or {{ expression }}
    """

    name = "SetVariable"
    display_name = "Set Variable"
    description = "Assign one or more workflow variables"

    async def execute(self, workflow_context, activity_context) -> List[str]:
        assignments = workflow_context.resolve_properties(self.properties.get("variables", {}))
        workflow_context.variables.update(assignments)
        return [DONE]

    @classmethod
    def get_properties_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"variables": {"type": "object"}},
            "required": ["variables"],
        }


class IfElseActivity(Activity):
    """Branch on a condition.

    Properties:
        condition: {{ expression }} evaluated against the workflow context;
            a condition that cannot be evaluated counts as false

    Outcomes: "True" or "False"
    """

    name = "IfElse"
    display_name = "If/Else"
    description = "Evaluate a condition and follow the True or False outcome"

    async def execute(self, workflow_context, activity_context) -> List[str]:
        result = workflow_context.evaluate(self.properties.get("condition", False), default=False)
        return ["True" if result else "False"]

    @classmethod
    def get_properties_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"condition": {"type": "string"}},
            "required": ["condition"],
        }


class ForkActivity(Activity):
    """Produce several outcomes at once.

    Properties:
        forks: List of outcome names. Branches run depth-first, the last
            fork first.
    """

    name = "Fork"
    display_name = "Fork"
    description = "Split execution into several branches"

    async def execute(self, workflow_context, activity_context) -> List[str]:
        return list(self.properties.get("forks", []))


class LogActivity(Activity):
    """Log a message (useful for debugging workflows).

    Properties:
        message: Text or {{ expression }}
        level: debug, info, warning or error (default: info)
    """

    name = "Log"
    display_name = "Log"
    description = "Write a message to the engine log"

    async def execute(self, workflow_context, activity_context) -> List[str]:
        message = workflow_context.evaluate(self.properties.get("message", ""))
        level = self.properties.get("level", "info")
        getattr(logger, level, logger.info)(
            str(message),
            workflow_instance_id=workflow_context.instance.id,
            activity_id=activity_context.record.id,
        )
        return [DONE]


CONTROL_ACTIVITY_TYPES = {
    "SetVariable": SetVariableActivity,
    "IfElse": IfElseActivity,
    "Fork": ForkActivity,
    "Log": LogActivity,
}
