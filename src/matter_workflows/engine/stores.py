"""Persistence collaborators consumed by the engine.

Implementations must raise :class:`~matter_workflows.engine.errors.PersistenceError`
when the durable store cannot be reached, and must refuse step appends and
finalization on records that are already terminal.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .models import ExecutionRecord, StepResult, WorkflowDefinition
from .state_machine import ExecutionStatus


class DefinitionStore(Protocol):
    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None: ...

    def list_active_workflows(self) -> list[WorkflowDefinition]: ...


class ExecutionStore(Protocol):
    def create_execution(self, workflow_id: str, trigger_data: Mapping[str, Any]) -> str: ...

    def append_step_result(self, execution_id: str, step: StepResult) -> None: ...

    def finalize_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        result: Mapping[str, Any],
        error: str | None = None,
    ) -> ExecutionRecord: ...

    def get_execution(self, execution_id: str) -> ExecutionRecord | None: ...
