"""Event activities.

These suspend a workflow until an external caller triggers an event
with the activity's type name.
"""

from typing import List

from activities.base import DONE, EventActivity


class SignalActivity(EventActivity):
    """Wait for a named signal.

    Triggered with trigger_event("Signal", input, correlation_id). Any input
    sent with the trigger has already been merged into the workflow input
    by the time execute() runs.

    Properties:
        output_variable: Optional variable name receiving the workflow input
    """

    name = "Signal"
    display_name = "Signal"
    description = "Suspend the workflow until a signal is received"

    async def execute(self, workflow_context, activity_context) -> List[str]:
        output_variable = self.properties.get("output_variable")
        if output_variable:
            workflow_context.variables[output_variable] = dict(workflow_context.input)
        return [DONE]


EVENT_ACTIVITY_TYPES = {
    "Signal": SignalActivity,
}
