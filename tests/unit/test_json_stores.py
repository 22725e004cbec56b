from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import pytest

from matter_workflows.engine.errors import (
    ExecutionNotFound,
    IllegalTransitionError,
    PersistenceError,
)
from matter_workflows.engine.models import (
    StepOutcome,
    StepResult,
    TriggerConfig,
    WorkflowDefinition,
)
from matter_workflows.engine.recorder import ExecutionRecorder
from matter_workflows.engine.state_machine import ExecutionStatus
from matter_workflows.storage import JsonExecutionStore, JsonWorkflowStore


def _workflow(workflow_id: str, *, active: bool = False) -> WorkflowDefinition:
    return WorkflowDefinition(
        id=workflow_id,
        name=f"Workflow {workflow_id}",
        trigger=TriggerConfig(type="record.created", entity_type="CONTACT"),
        is_active=active,
    )


def test_workflow_store_upsert_and_delete(workflow_store: JsonWorkflowStore) -> None:
    assert workflow_store.list() == []

    workflow_store.save(_workflow("a"))
    workflow_store.save(_workflow("b", active=True))
    workflow_store.save(replace(_workflow("a"), name="Renamed"))

    assert [w.id for w in workflow_store.list()] == ["a", "b"]
    assert workflow_store.get_workflow("a").name == "Renamed"
    assert [w.id for w in workflow_store.list_active_workflows()] == ["b"]

    assert workflow_store.delete("a") is True
    assert workflow_store.delete("a") is False
    assert workflow_store.get_workflow("a") is None


def test_workflow_store_survives_reload(state_dir: Path, workflow_store: JsonWorkflowStore) -> None:
    workflow_store.save(_workflow("a", active=True))

    reloaded = JsonWorkflowStore(state_dir / "workflows.json")
    assert reloaded.get_workflow("a") == _workflow("a", active=True)


def test_corrupt_files_raise_persistence_error(state_dir: Path) -> None:
    (state_dir / "workflows.json").write_text("{not json", encoding="utf-8")
    (state_dir / "executions.json").write_text('[{"id": 1}]', encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonWorkflowStore(state_dir / "workflows.json").list()
    with pytest.raises(PersistenceError):
        JsonExecutionStore(state_dir / "executions.json").get_execution("x")


def test_invalid_stored_definition_raises_persistence_error(state_dir: Path) -> None:
    (state_dir / "workflows.json").write_text('[{"id": "a", "name": "x"}]', encoding="utf-8")

    with pytest.raises(PersistenceError, match="Corrupt workflow definition"):
        JsonWorkflowStore(state_dir / "workflows.json").list_active_workflows()


def test_execution_lifecycle(execution_store: JsonExecutionStore) -> None:
    execution_id = execution_store.create_execution("wf-1", {"matterId": "M1"})

    record = execution_store.get_execution(execution_id)
    assert record is not None
    assert record.status is ExecutionStatus.RUNNING
    assert record.trigger_data == {"matterId": "M1"}
    assert record.finished_at is None

    execution_store.append_step_result(
        execution_id, StepResult(action_kind="send_email", outcome=StepOutcome.SUCCESS)
    )
    final = execution_store.finalize_execution(
        execution_id, ExecutionStatus.SUCCEEDED, {"lastEmailSent": {"to": "a@b.c"}}
    )

    assert final.status is ExecutionStatus.SUCCEEDED
    assert final.finished_at is not None
    assert [s.action_kind for s in final.step_results] == ["send_email"]
    assert execution_store.get_execution(execution_id) == final


def test_terminal_records_refuse_writes(execution_store: JsonExecutionStore) -> None:
    execution_id = execution_store.create_execution("wf-1", {})
    execution_store.finalize_execution(execution_id, ExecutionStatus.FAILED, {}, "timed out")

    with pytest.raises(IllegalTransitionError):
        execution_store.finalize_execution(execution_id, ExecutionStatus.SUCCEEDED, {})
    with pytest.raises(IllegalTransitionError):
        execution_store.append_step_result(
            execution_id, StepResult(action_kind="delay", outcome=StepOutcome.SUCCESS)
        )

    record = execution_store.get_execution(execution_id)
    assert record.status is ExecutionStatus.FAILED
    assert record.error == "timed out"
    assert record.step_results == []


def test_unknown_execution(execution_store: JsonExecutionStore) -> None:
    assert execution_store.get_execution("nope") is None
    with pytest.raises(ExecutionNotFound):
        execution_store.append_step_result(
            "nope", StepResult(action_kind="delay", outcome=StepOutcome.SUCCESS)
        )
    with pytest.raises(ExecutionNotFound):
        ExecutionRecorder(execution_store).finalize("nope", ExecutionStatus.SUCCEEDED, {})


def test_history_is_newest_first_and_deletable(execution_store: JsonExecutionStore) -> None:
    ids = [execution_store.create_execution("wf-1", {"n": n}) for n in range(3)]
    other = execution_store.create_execution("wf-2", {})

    history = execution_store.list_for_workflow("wf-1")
    assert [r.id for r in history] == list(reversed(ids))
    assert [r.id for r in execution_store.list_for_workflow("wf-1", limit=2)] == [ids[2], ids[1]]

    assert execution_store.delete_for_workflow("wf-1") == 3
    assert execution_store.list_for_workflow("wf-1") == []
    assert execution_store.get_execution(other) is not None


def test_execution_counts(execution_store: JsonExecutionStore) -> None:
    assert execution_store.count_by_workflow() == {}

    for _ in range(3):
        execution_store.create_execution("wf-1", {})
    execution_store.create_execution("wf-2", {})
    [latest] = execution_store.list_for_workflow("wf-2")

    assert execution_store.count_by_workflow() == {"wf-1": 3, "wf-2": 1}
    assert execution_store.count_by_workflow(since=latest.started_at)["wf-2"] == 1
    assert execution_store.count_by_workflow(since=latest.started_at + timedelta(seconds=1)) == {}


def test_recorder_checks_the_state_machine(execution_store: JsonExecutionStore) -> None:
    recorder = ExecutionRecorder(execution_store)
    execution_id = recorder.begin("wf-1", {"a": 1})

    with pytest.raises(IllegalTransitionError):
        recorder.finalize(execution_id, ExecutionStatus.RUNNING, {})

    record = recorder.finalize(execution_id, ExecutionStatus.PARTIAL, {"createdTaskId": "T1"})
    assert record.status is ExecutionStatus.PARTIAL
    assert record.result == {"createdTaskId": "T1"}
