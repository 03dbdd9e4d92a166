"""Shared pytest fixtures for the workflow engine test suite.

Provides:
- Test activities that write what they do to a shared journal
- Activity library, in-memory stores and a wired WorkflowManager
- A definition builder
- File-backed async SQLite database for the SQL stores
"""

import os

import pytest
import pytest_asyncio

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")

from activities.base import DONE, Activity, EventActivity  # noqa: E402
from activities.library import ActivityLibrary  # noqa: E402
from db.database import close_db, create_db_engine, create_session_factory, init_db  # noqa: E402
from services.memory import InMemoryWorkflowDefinitionStore, InMemoryWorkflowInstanceStore  # noqa: E402
from workflow.context import WorkflowContextProvider  # noqa: E402
from workflow.manager import WorkflowManager  # noqa: E402
from workflow.models import ActivityRecord, Transition, WorkflowDefinition  # noqa: E402


# ---------------------------------------------------------------------------
# Test activities
# ---------------------------------------------------------------------------

def _journal(workflow_context) -> list:
    return workflow_context.properties.setdefault("journal", [])


class TaskActivity(Activity):
    """Inline activity.

    Properties:
        outcomes: Outcomes to produce (default ["Done"])
        gate: Value returned by can_execute (default True)
    """

    name = "Task"

    async def can_execute(self, workflow_context, activity_context) -> bool:
        return self.properties.get("gate", True)

    async def execute(self, workflow_context, activity_context):
        _journal(workflow_context).append(("execute", activity_context.record.id))
        return list(self.properties.get("outcomes", [DONE]))


class ApprovalActivity(EventActivity):
    """Event activity recording the approval flag from the workflow input."""

    name = "WaitForApproval"

    async def execute(self, workflow_context, activity_context):
        _journal(workflow_context).append(("execute", activity_context.record.id))
        workflow_context.variables["approved"] = workflow_context.input.get("approved")
        return list(self.properties.get("outcomes", [DONE]))


class VetoActivity(Activity):
    """Cancels lifecycle steps through its hooks.

    Properties:
        cancel_start: Cancel on workflow-starting
        cancel_resume: Cancel on workflow-resuming
        cancel_activity: Activity id whose execution is cancelled
    """

    name = "Veto"

    async def execute(self, workflow_context, activity_context):
        return [DONE]

    def on_workflow_starting(self, workflow_context, cancellation):
        _journal(workflow_context).append(("starting", None))
        if self.properties.get("cancel_start"):
            cancellation.cancel()

    def on_workflow_started(self, workflow_context):
        _journal(workflow_context).append(("started", None))

    def on_workflow_resuming(self, workflow_context, cancellation):
        _journal(workflow_context).append(("resuming", None))
        if self.properties.get("cancel_resume"):
            cancellation.cancel()

    def on_workflow_resumed(self, workflow_context):
        _journal(workflow_context).append(("resumed", None))

    def on_activity_executing(self, workflow_context, activity_context, cancellation):
        _journal(workflow_context).append(("executing", activity_context.record.id))
        if self.properties.get("cancel_activity") == activity_context.record.id:
            cancellation.cancel()

    def on_activity_executed(self, workflow_context, activity_context):
        _journal(workflow_context).append(("executed", activity_context.record.id))


class JournalProvider(WorkflowContextProvider):
    """Hands every new context the same journal list."""

    def __init__(self, journal: list):
        self.journal = journal

    def configure(self, context) -> None:
        context.properties["journal"] = self.journal


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def journal() -> list:
    return []


@pytest.fixture
def activity_library() -> ActivityLibrary:
    library = ActivityLibrary()
    library.register(TaskActivity)
    library.register(ApprovalActivity)
    library.register(VetoActivity)
    return library


@pytest.fixture
def definition_store() -> InMemoryWorkflowDefinitionStore:
    return InMemoryWorkflowDefinitionStore()


@pytest.fixture
def instance_store() -> InMemoryWorkflowInstanceStore:
    return InMemoryWorkflowInstanceStore()


@pytest.fixture
def manager(activity_library, definition_store, instance_store, journal) -> WorkflowManager:
    return WorkflowManager(
        activity_library=activity_library,
        definition_store=definition_store,
        instance_store=instance_store,
        context_providers=[JournalProvider(journal)],
    )


@pytest.fixture
def build_definition():
    """Build a definition from compact tuples.

    activities: (id, type name[, properties[, is_start]])
    transitions: (source id, outcome, destination id)
    """

    def _build(activities, transitions=(), id="wf-1", name="Test Workflow") -> WorkflowDefinition:
        records = []
        for entry in activities:
            activity_id, activity_name, *rest = entry
            properties = rest[0] if len(rest) > 0 else {}
            is_start = rest[1] if len(rest) > 1 else False
            records.append(
                ActivityRecord(id=activity_id, name=activity_name, properties=properties, is_start=is_start)
            )
        return WorkflowDefinition(
            id=id,
            name=name,
            activities=records,
            transitions=[
                Transition(source_activity_id=s, source_outcome_name=o, destination_activity_id=d)
                for s, o, d in transitions
            ],
        )

    return _build


@pytest.fixture
def approval_definition(build_definition) -> WorkflowDefinition:
    """A1 (start) --Done--> A2 (WaitForApproval)."""
    return build_definition(
        [("a1", "Task", {}, True), ("a2", "WaitForApproval")],
        [("a1", "Done", "a2")],
        id="approval",
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create an async engine on a fresh SQLite file with all tables."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'workflows.db'}")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)
