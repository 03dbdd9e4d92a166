"""Tests for the SQL and in-memory workflow stores."""

import pytest

from app.dependencies import build_workflow_manager
from core.exceptions import ConcurrencyError
from services.definition_service import SqlWorkflowDefinitionStore
from services.instance_service import SqlWorkflowInstanceStore
from services.memory import InMemoryWorkflowDefinitionStore, InMemoryWorkflowInstanceStore
from workflow.models import AwaitingActivityRecord, WorkflowInstanceRecord, WorkflowState


def _awaiting_instance(definition_id="wf-1", correlation_id=None, *names: str) -> WorkflowInstanceRecord:
    return WorkflowInstanceRecord(
        definition_id=definition_id,
        correlation_id=correlation_id,
        state=WorkflowState(input={"order": 1}, variables={"status": "open"}),
        awaiting_activities=[
            AwaitingActivityRecord(activity_id=f"wait-{i}", activity_name=name)
            for i, name in enumerate(names or ("Signal",))
        ],
    )


@pytest.fixture
def sql_definition_store(session_factory):
    return SqlWorkflowDefinitionStore(session_factory)


@pytest.fixture
def sql_instance_store(session_factory):
    return SqlWorkflowInstanceStore(session_factory)


@pytest.mark.integration
class TestSqlDefinitionStore:

    async def test_save_and_get(self, sql_definition_store, approval_definition):
        await sql_definition_store.save(approval_definition)
        loaded = await sql_definition_store.get_by_id("approval")
        assert loaded == approval_definition

    async def test_get_missing(self, sql_definition_store):
        assert await sql_definition_store.get_by_id("missing") is None

    async def test_find_by_start_activity_is_case_insensitive(self, sql_definition_store, build_definition):
        await sql_definition_store.save(build_definition([("s", "Signal", {}, True)], id="by-signal"))
        await sql_definition_store.save(build_definition([("t", "Task", {}, True)], id="by-task"))

        found = await sql_definition_store.find_by_start_activity("signal")
        assert [d.id for d in found] == ["by-signal"]

    async def test_save_replaces_start_index(self, sql_definition_store, build_definition):
        await sql_definition_store.save(build_definition([("s", "Signal", {}, True)]))
        await sql_definition_store.save(build_definition([("s", "Signal"), ("t", "Task", {}, True)]))

        assert await sql_definition_store.find_by_start_activity("Signal") == []
        assert [d.id for d in await sql_definition_store.find_by_start_activity("Task")] == ["wf-1"]

    async def test_disabled_definition_not_started(self, sql_definition_store, build_definition):
        await sql_definition_store.save(build_definition([("s", "Signal", {}, True)]))
        assert await sql_definition_store.set_enabled("wf-1", False) is True

        assert await sql_definition_store.find_by_start_activity("Signal") == []
        assert await sql_definition_store.get_by_id("wf-1") is not None

    async def test_removed_definition_still_resolvable(self, sql_definition_store, build_definition):
        await sql_definition_store.save(build_definition([("s", "Signal", {}, True)]))
        assert await sql_definition_store.remove("wf-1") is True

        assert await sql_definition_store.find_by_start_activity("Signal") == []
        assert await sql_definition_store.get_by_id("wf-1") is not None
        assert await sql_definition_store.exists("wf-1") is False
        assert await sql_definition_store.remove("wf-1") is False


@pytest.mark.integration
class TestSqlInstanceStore:

    async def test_save_and_get(self, sql_instance_store):
        instance = _awaiting_instance("wf-1", "c-1", "Signal", "WaitForApproval")
        await sql_instance_store.save(instance)
        assert instance.version == 1

        loaded = await sql_instance_store.get_by_id(instance.id)
        assert loaded.correlation_id == "c-1"
        assert loaded.state == instance.state
        assert loaded.awaiting_activities == instance.awaiting_activities
        assert loaded.version == 1

    async def test_find_awaiting(self, sql_instance_store):
        first = _awaiting_instance("wf-1", "c-1", "Signal")
        second = _awaiting_instance("wf-1", "c-2", "Signal", "WaitForApproval")
        other = _awaiting_instance("wf-1", "c-1", "WaitForApproval")
        for instance in (first, second, other):
            await sql_instance_store.save(instance)

        assert [i.id for i in await sql_instance_store.find_awaiting("Signal")] == [first.id, second.id]
        assert [i.id for i in await sql_instance_store.find_awaiting("Signal", "c-2")] == [second.id]
        assert await sql_instance_store.find_awaiting("Missing") == []

    async def test_find_awaiting_is_case_insensitive(self, sql_instance_store):
        instance = _awaiting_instance("wf-1", None, "WaitForApproval")
        await sql_instance_store.save(instance)

        assert [i.id for i in await sql_instance_store.find_awaiting("waitforapproval")] == [instance.id]

    async def test_update_replaces_awaiting(self, sql_instance_store):
        instance = _awaiting_instance("wf-1", None, "Signal", "WaitForApproval")
        await sql_instance_store.save(instance)

        instance.awaiting_activities = instance.awaiting_activities[1:]
        instance.state.variables["status"] = "approved"
        await sql_instance_store.save(instance)

        loaded = await sql_instance_store.get_by_id(instance.id)
        assert loaded.version == 2
        assert [a.activity_id for a in loaded.awaiting_activities] == ["wait-1"]
        assert loaded.state.variables == {"status": "approved"}
        assert await sql_instance_store.find_awaiting("Signal") == []

    async def test_stale_save_raises(self, sql_instance_store):
        instance = _awaiting_instance()
        await sql_instance_store.save(instance)
        stale = await sql_instance_store.get_by_id(instance.id)

        await sql_instance_store.save(instance)

        with pytest.raises(ConcurrencyError):
            await sql_instance_store.save(stale)

    async def test_duplicate_insert_raises(self, sql_instance_store):
        instance = _awaiting_instance()
        await sql_instance_store.save(instance)

        with pytest.raises(ConcurrencyError):
            await sql_instance_store.save(instance.model_copy(update={"version": 0}))

    async def test_delete(self, sql_instance_store):
        instance = _awaiting_instance()
        await sql_instance_store.save(instance)

        await sql_instance_store.delete(instance)

        assert await sql_instance_store.get_by_id(instance.id) is None
        assert await sql_instance_store.find_awaiting("Signal") == []

    async def test_stale_delete_raises(self, sql_instance_store):
        instance = _awaiting_instance()
        await sql_instance_store.save(instance)
        stale = await sql_instance_store.get_by_id(instance.id)
        await sql_instance_store.save(instance)

        with pytest.raises(ConcurrencyError):
            await sql_instance_store.delete(stale)
        assert await sql_instance_store.get_by_id(instance.id) is not None

    async def test_delete_unsaved_is_noop(self, sql_instance_store):
        await sql_instance_store.delete(_awaiting_instance())


@pytest.mark.unit
class TestInMemoryStores:

    async def test_records_are_copied(self):
        store = InMemoryWorkflowInstanceStore()
        instance = _awaiting_instance()
        await store.save(instance)

        instance.state.variables["status"] = "changed"
        loaded = await store.get_by_id(instance.id)
        assert loaded.state.variables == {"status": "open"}

    async def test_stale_save_raises(self):
        store = InMemoryWorkflowInstanceStore()
        instance = _awaiting_instance()
        await store.save(instance)
        stale = await store.get_by_id(instance.id)
        await store.save(instance)

        with pytest.raises(ConcurrencyError):
            await store.save(stale)

    async def test_delete_after_delete_raises(self):
        store = InMemoryWorkflowInstanceStore()
        instance = _awaiting_instance()
        await store.save(instance)
        copy = await store.get_by_id(instance.id)
        await store.delete(instance)

        with pytest.raises(ConcurrencyError):
            await store.delete(copy)
        assert len(store) == 0

    async def test_find_awaiting_is_case_insensitive(self):
        store = InMemoryWorkflowInstanceStore()
        instance = _awaiting_instance("wf-1", None, "WaitForApproval")
        await store.save(instance)

        assert [i.id for i in await store.find_awaiting("WAITFORAPPROVAL")] == [instance.id]

    async def test_definition_lookup_by_start_activity(self, build_definition):
        store = InMemoryWorkflowDefinitionStore([build_definition([("s", "Signal", {}, True)])])
        assert [d.id for d in await store.find_by_start_activity("SIGNAL")] == ["wf-1"]
        assert await store.find_by_start_activity("Log") == []


@pytest.mark.integration
class TestSqlEndToEnd:

    async def test_approval_flow_on_sql_stores(self, session_factory, approval_definition, activity_library):
        manager = build_workflow_manager(session_factory, activity_library)
        definition_store = SqlWorkflowDefinitionStore(session_factory)
        instance_store = SqlWorkflowInstanceStore(session_factory)
        await definition_store.save(approval_definition)

        context = await manager.start_workflow(approval_definition, input={"order": 9}, correlation_id="o-9")
        stored = await instance_store.get_by_id(context.instance.id)
        assert [a.activity_id for a in stored.awaiting_activities] == ["a2"]

        await manager.trigger_event("WaitForApproval", {"approved": True}, correlation_id="o-9")

        assert await instance_store.get_by_id(context.instance.id) is None
